from mako.template import Template

# One ES module per handler: sibling handlers of the same source file are
# imported by name, the handler itself is the default export.
HANDLER_MODULE_TEMPLATE = Template(
	"""% for name, filename in imports:
import { default as ${name} } from "./${filename}.js";
% endfor
export default ${source}"""
)

BOOTSTRAP_MARKER_TEMPLATE = Template("// client-functions v${version}")


def render_handler_module(imports: list[tuple[str, str]], source: str) -> str:
	return str(HANDLER_MODULE_TEMPLATE.render_unicode(imports=imports, source=source))


def bootstrap_marker(version: str) -> str:
	return str(BOOTSTRAP_MARKER_TEMPLATE.render_unicode(version=version))
