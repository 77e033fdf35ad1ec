"""HTML helpers for note and message bodies."""

from bs4 import BeautifulSoup

from inbox_agent.models import NoteImage

_BLOCK_TAGS = ["p", "div", "li", "tr", "h1", "h2", "h3", "h4", "h5", "h6", "br"]


def html_to_text(markup: str) -> str:
    """Convert HTML to plain text, one line per block element.

    Script, style and head content is dropped, whitespace inside each line is
    collapsed and empty lines are removed.
    """
    if not markup:
        return ""

    soup = BeautifulSoup(markup, "html.parser")
    for tag in soup(["script", "style", "head"]):
        tag.decompose()
    for tag in soup(_BLOCK_TAGS):
        tag.append("\n")

    lines = (" ".join(line.split()) for line in soup.get_text().splitlines())
    return "\n".join(line for line in lines if line)


def extract_images(markup: str) -> list[NoteImage]:
    # OneNote serves a thumbnail in src and the original in data-fullres-src
    soup = BeautifulSoup(markup, "html.parser")
    images = []
    for img in soup.find_all("img"):
        src = img.get("data-fullres-src") or img.get("src")
        if src:
            images.append(NoteImage(url=src, alt=img.get("alt", "")))
    return images
