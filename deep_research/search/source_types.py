"""URL helpers: source type classification and normalization for dedup."""

from urllib.parse import urlsplit, urlunsplit

from deep_research.shared.contracts.research_output import SourceType


ACADEMIC_MARKERS = ("arxiv.org", "scholar", "pubmed", "doi.org", ".edu/", "researchgate")
OFFICIAL_MARKERS = ("gov", ".org/", "who.int", "un.org")
NEWS_MARKERS = ("news", "bbc", "cnn", "reuters", "nytimes", "theguardian")


def detect_source_type(url: str) -> SourceType:
    """
    Classify a URL as academic, official, news or plain web.

    Checks run in that order, so a URL matching several groups takes the
    first one (e.g. a news page on a .gov host is "official").
    """
    lower_url = url.lower()

    if any(marker in lower_url for marker in ACADEMIC_MARKERS):
        return "academic"
    if any(marker in lower_url for marker in OFFICIAL_MARKERS):
        return "official"
    if any(marker in lower_url for marker in NEWS_MARKERS):
        return "news"
    return "web"


def normalize_url(url: str) -> str:
    """
    Normalize a URL for duplicate detection.

    Lowercases scheme and host, drops "www.", the fragment and any
    trailing slash. The query string is kept since it often identifies
    the document.
    """
    parts = urlsplit(url.strip())
    host = parts.netloc.lower()
    if host.startswith("www."):
        host = host[4:]
    path = parts.path.rstrip("/")
    return urlunsplit((parts.scheme.lower(), host, path, parts.query, ""))


def hostname(url: str) -> str:
    """Host part of a URL without "www.", or the URL itself if unparsable."""
    host = urlsplit(url).netloc
    if host.startswith("www."):
        host = host[4:]
    return host or url
