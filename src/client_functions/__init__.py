"""Declare browser event handlers in Python and serve them as lazily loaded ES modules."""

# Build
from client_functions.build import BuildOptions as BuildOptions
from client_functions.build import BuildResult as BuildResult
from client_functions.build import BuildTimings as BuildTimings
from client_functions.build import build_script_files as build_script_files
from client_functions.build import transpile_client_file as transpile_client_file

# Dispatch
from client_functions.dispatch import Dispatcher as Dispatcher
from client_functions.dispatch import create_dispatcher as create_dispatcher
from client_functions.dispatch import install as install

# Errors
from client_functions.errors import ClientFunctionError as ClientFunctionError
from client_functions.errors import HandlerLoadError as HandlerLoadError
from client_functions.errors import TranspileError as TranspileError

# Naming
from client_functions.naming import NameCache as NameCache
from client_functions.naming import generate_filename as generate_filename

# Registry
from client_functions.registry import ClientFunction as ClientFunction
from client_functions.registry import HandlerRegistry as HandlerRegistry
from client_functions.registry import client_function as client_function
from client_functions.registry import client_source as client_source
from client_functions.registry import get_registry as get_registry
from client_functions.registry import js as js
from client_functions.registry import reset_registry as reset_registry

# Transpiler
from client_functions.transpiler import EsbuildTranspiler as EsbuildTranspiler
from client_functions.transpiler import TransformOptions as TransformOptions
from client_functions.transpiler import Transpiler as Transpiler
from client_functions.transpiler import set_default_transpiler as set_default_transpiler

from client_functions.version import __version__ as __version__
