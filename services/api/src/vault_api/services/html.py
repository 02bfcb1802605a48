"""网页快照清洗与元信息提取。"""

from urllib.parse import urlparse

from bs4 import BeautifulSoup, Comment

ALLOWED_TAGS = frozenset(
    {
        "p", "br", "strong", "em", "u",
        "h1", "h2", "h3", "h4", "h5", "h6",
        "ul", "ol", "li", "blockquote",
        "a", "img", "code", "pre", "div", "span",
    }
)
ALLOWED_ATTRIBUTES = frozenset({"href", "src", "alt", "title", "class"})
# 连同内容整体丢弃的标签。
DROPPED_TAGS = ("script", "style", "iframe", "object", "embed", "noscript", "template", "head", "form")
UNSAFE_URL_SCHEMES = ("javascript:", "vbscript:", "data:")
EXCERPT_MAX_LENGTH = 300


def _is_unsafe_url(value: str) -> bool:
    normalized = "".join(value.split()).lower()
    return normalized.startswith(UNSAFE_URL_SCHEMES)


def sanitize_html(html: str) -> str:
    """按白名单清洗 HTML，非白名单标签仅保留文本内容。"""
    soup = BeautifulSoup(html or "", "lxml")

    for node in soup.find_all(string=lambda text: isinstance(text, Comment)):
        node.extract()
    for tag in soup.find_all(DROPPED_TAGS):
        tag.decompose()

    for tag in soup.find_all(True):
        if tag.name in {"html", "body"}:
            continue
        if tag.name not in ALLOWED_TAGS:
            tag.unwrap()
            continue
        for attribute in list(tag.attrs):
            if attribute not in ALLOWED_ATTRIBUTES:
                del tag.attrs[attribute]
                continue
            value = tag.attrs[attribute]
            if attribute in {"href", "src"} and isinstance(value, str) and _is_unsafe_url(value):
                del tag.attrs[attribute]

    root = soup.body or soup
    return "".join(str(child) for child in root.contents).strip()


def _meta_content(soup: BeautifulSoup, **attrs: str) -> str | None:
    tag = soup.find("meta", attrs=attrs)
    if tag is None:
        return None
    content = tag.get("content")
    if isinstance(content, str) and content.strip():
        return content.strip()
    return None


def extract_metadata(html: str, url: str) -> dict[str, str | None]:
    """提取标题与摘要：og 标签优先，其次 <title>/description，标题最终回退到域名。"""
    soup = BeautifulSoup(html or "", "lxml")

    title = _meta_content(soup, property="og:title")
    if not title and soup.title and soup.title.string:
        title = soup.title.string.strip() or None
    if not title:
        title = urlparse(url).hostname or url

    excerpt = _meta_content(soup, property="og:description") or _meta_content(soup, name="description")
    if excerpt:
        excerpt = excerpt[:EXCERPT_MAX_LENGTH]
    return {"title": title, "excerpt": excerpt}
