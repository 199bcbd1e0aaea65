"""Template loading for prompts and user-facing help text.

Templates are markdown files shipped in ``goto_work/templates``. Optional
YAML frontmatter is stripped so templates can carry notes for maintainers.

Exit behavior: Functions raise exceptions (fail-fast). Callers handle graceful degradation.
"""

from goto_work.lib.paths import get_templates_dir


def load_template(name: str, variables: dict[str, str] | None = None) -> str:
    """Load a packaged template and optionally format it with variables.

    Args:
        name: File name inside the templates directory
        variables: Optional dict of variables to interpolate using str.format()

    Returns:
        Template content with frontmatter stripped and variables interpolated

    Raises:
        FileNotFoundError: If the template doesn't exist
        KeyError: If the template references a variable not in variables

    Example:
        >>> prompt = load_template("arbiter-system-prompt.md")
    """
    template_path = get_templates_dir() / name
    if not template_path.exists():
        raise FileNotFoundError(f"Template not found: {template_path}")

    content = _strip_frontmatter(template_path.read_text(encoding="utf-8"))

    if variables:
        content = content.format(**variables)

    return content


def _strip_frontmatter(content: str) -> str:
    """Strip a leading ``---`` delimited frontmatter block.

    Only the first block is removed; later ``---`` rules in the body stay.
    Malformed frontmatter (no closing delimiter) leaves the content intact.
    """
    if not content.startswith("---"):
        return content.strip()

    _, _, rest = content.partition("\n")
    body_start = rest.find("\n---\n")
    if body_start != -1:
        return rest[body_start + len("\n---\n") :].strip()
    if rest.rstrip().endswith("\n---") or rest.strip() == "---":
        # Frontmatter only
        return ""
    return content.strip()
