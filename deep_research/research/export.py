"""
Markdown export of a finished research document.
"""

from typing import List

from deep_research.shared.contracts.research_output import ResearchOutputV1


def render_research_markdown(metadata: ResearchOutputV1) -> str:
    """
    Render a research document as Markdown.

    Sections keep their inline [n] citations; the reference list at the end
    is numbered with the same ids. Failed sections are listed with a note
    instead of content.

    Args:
        metadata: Finished research document

    Returns:
        Markdown string
    """
    lines: List[str] = []

    lines.append(f"# {metadata.title}")
    lines.append("")
    lines.append(
        f"*{metadata.total_sources} sources | {metadata.total_word_count} words | "
        f"{metadata.estimated_read_time} min read*"
    )
    lines.append("")

    if metadata.abstract:
        lines.append("## Abstract")
        lines.append("")
        lines.append(metadata.abstract)
        lines.append("")

    if metadata.key_findings:
        lines.append("## Key Findings")
        lines.append("")
        for finding in metadata.key_findings:
            lines.append(f"- {finding}")
        lines.append("")

    for section in metadata.sections:
        lines.append(f"## {section.heading}")
        lines.append("")
        if section.status == "completed" and section.content:
            lines.append(section.content)
        else:
            lines.append(f"*This section could not be generated ({section.error or section.status}).*")
        lines.append("")

    if metadata.methodology or metadata.limitations:
        lines.append("## Methodology")
        lines.append("")
        if metadata.methodology:
            lines.append(metadata.methodology)
            lines.append("")
        for limitation in metadata.limitations:
            lines.append(f"- {limitation}")
        if metadata.limitations:
            lines.append("")

    if metadata.all_citations:
        lines.append("## References")
        lines.append("")
        for citation in metadata.all_citations:
            details = [d for d in (citation.author, citation.date) if d]
            suffix = f" ({', '.join(details)})" if details else ""
            lines.append(f"[{citation.id}] [{citation.title}]({citation.url}){suffix}")
        lines.append("")

    return "\n".join(lines)
