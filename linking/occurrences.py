"""
Link Occurrence Sync

Parses the stored HTML of every page in a silo into LinkOccurrence rows:
- classification (INTERNAL / EXTERNAL / AFFILIATE) and target page resolution
- rel flags (nofollow, sponsored, ugc) and target=_blank
- context snippet, character offsets and document position bucket

Parsing fans out over a thread pool; writes stay on the calling thread.
"""
import hashlib
import logging
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlparse

from bs4 import BeautifulSoup, NavigableString, Tag, Comment
from django.conf import settings
from django.db import transaction

from .lexicon import Lexicon, get_lexicon
from .models import LinkOccurrence
from .records import PageRecord

logger = logging.getLogger(__name__)

# Cap per page to keep giant bodies from dominating a sync
MAX_LINKS_PER_PAGE = 200
SNIPPET_LENGTH = 200
IGNORED_PREFIXES = ('#', 'mailto:', 'tel:', 'javascript:')

_WHITESPACE = re.compile(r'\s+')


@dataclass(frozen=True)
class ParsedLink:
    anchor_text: str
    href: str
    context_snippet: str
    position_bucket: str
    link_type: str
    target_page_id: Optional[int]
    is_nofollow: bool
    is_sponsored: bool
    is_ugc: bool
    is_blank: bool
    start_index: Optional[int]
    end_index: Optional[int]
    occurrence_key: str

    @property
    def signature(self) -> Tuple:
        return (
            self.occurrence_key, self.target_page_id, self.position_bucket, self.link_type,
            self.is_nofollow, self.is_sponsored, self.is_ugc, self.is_blank, self.start_index,
        )


def _collapse(text: str) -> str:
    return _WHITESPACE.sub(' ', text or '').strip()


def _normalize_host(host: str) -> str:
    host = (host or '').strip().lower()
    return host[4:] if host.startswith('www.') else host


def _normalize_path(path: str) -> Optional[str]:
    cleaned = (path or '').split('#')[0].split('?')[0].strip()
    if not cleaned:
        return None
    if not cleaned.startswith('/'):
        cleaned = f"/{cleaned}"
    if len(cleaned) > 1 and cleaned.endswith('/'):
        cleaned = cleaned.rstrip('/') or '/'
    return cleaned.lower()


def site_host() -> Optional[str]:
    site_url = getattr(settings, 'SITE_URL', '') or ''
    host = urlparse(site_url).hostname
    return _normalize_host(host) if host else None


def path_from_href(href: str, own_host: Optional[str]) -> Optional[str]:
    """Site-relative path for internal hrefs, None for links to other hosts."""
    if href.startswith('//'):
        href = f"https:{href}"
    if re.match(r'^https?://', href, re.IGNORECASE):
        parsed = urlparse(href)
        host = _normalize_host(parsed.hostname or '')
        if own_host and host != own_host:
            return None
        return _normalize_path(parsed.path or '/')
    if re.match(r'^[a-z][a-z0-9+.-]*:', href, re.IGNORECASE):
        return None
    return _normalize_path(href)


def build_path_index(pages: List[PageRecord]) -> Dict[str, int]:
    """Map of normalized path (and bare slug) to page id."""
    index = {}
    for page in pages:
        for key in (page.path, page.slug):
            normalized = _normalize_path(key)
            if normalized:
                index.setdefault(normalized, page.id)
    return index


def resolve_target(path: Optional[str], path_index: Dict[str, int]) -> Optional[int]:
    if not path:
        return None
    if path in path_index:
        return path_index[path]
    last_segment = _normalize_path(path.rstrip('/').rsplit('/', 1)[-1])
    return path_index.get(last_segment) if last_segment else None


def bucket_for(position: int, total: int) -> str:
    if not total:
        return LinkOccurrence.BUCKET_START
    ratio = position / total
    if ratio < 0.33:
        return LinkOccurrence.BUCKET_START
    if ratio < 0.66:
        return LinkOccurrence.BUCKET_MID
    return LinkOccurrence.BUCKET_END


def _context_around(tag: Tag, anchor: str) -> str:
    parent_text = _collapse(tag.parent.get_text(' ')) if tag.parent else anchor
    position = parent_text.find(anchor)
    if position < 0 or len(parent_text) <= SNIPPET_LENGTH:
        return parent_text[:SNIPPET_LENGTH]
    start = max(0, position - (SNIPPET_LENGTH - len(anchor)) // 2)
    return parent_text[start:start + SNIPPET_LENGTH]


def extract_links(html: str, path_index: Dict[str, int], own_host: Optional[str] = None,
                  lexicon: Lexicon = None) -> List[ParsedLink]:
    """Parse every usable <a href> of an HTML body, in document order."""
    if not html:
        return []
    lexicon = lexicon or get_lexicon()
    no_text, image_only = lexicon.placeholder_anchors

    soup = BeautifulSoup(html, 'html.parser')
    located = []
    offset = 0
    for node in soup.descendants:
        if isinstance(node, NavigableString):
            if not isinstance(node, Comment):
                offset += len(node)
        elif isinstance(node, Tag) and node.name == 'a' and node.get('href') is not None:
            located.append((node, offset))
    total = offset

    full_text = _collapse(soup.get_text())
    cursor = 0
    links = []
    for tag, position in located[:MAX_LINKS_PER_PAGE]:
        href = str(tag.get('href') or '').strip()
        if not href or href.lower().startswith(IGNORED_PREFIXES):
            continue

        anchor = _collapse(tag.get_text(' '))
        if not anchor:
            anchor = image_only if tag.find('img') else no_text

        rel = tag.get('rel') or []
        if isinstance(rel, str):
            rel = rel.split()
        rel = {value.lower() for value in rel}

        path = path_from_href(href, own_host)
        target_id = resolve_target(path, path_index)
        if path is not None:
            link_type = LinkOccurrence.TYPE_INTERNAL
        elif any(hint in href.lower() for hint in lexicon.affiliate_hints):
            link_type = LinkOccurrence.TYPE_AFFILIATE
        else:
            link_type = LinkOccurrence.TYPE_EXTERNAL

        snippet = _context_around(tag, anchor)
        start_index = end_index = None
        if anchor not in lexicon.placeholder_anchors:
            found = full_text.find(anchor, cursor)
            if found >= 0:
                start_index, end_index = found, found + len(anchor)
                cursor = end_index

        occurrence_key = hashlib.sha1(f"{anchor}|{href}|{snippet}".encode('utf-8')).hexdigest()
        links.append(ParsedLink(
            anchor_text=anchor[:255],
            href=href[:500],
            context_snippet=snippet,
            position_bucket=bucket_for(position, total),
            link_type=link_type,
            target_page_id=target_id if link_type == LinkOccurrence.TYPE_INTERNAL else None,
            is_nofollow='nofollow' in rel,
            is_sponsored='sponsored' in rel,
            is_ugc='ugc' in rel,
            is_blank=str(tag.get('target') or '') == '_blank',
            start_index=start_index,
            end_index=end_index,
            occurrence_key=occurrence_key,
        ))
    return links


def replace_page_occurrences(silo, page_id: int, links: List[ParsedLink]) -> bool:
    """
    Supersede the stored occurrences of one source page.

    Returns False (and writes nothing) when the parsed links match what is
    stored, so occurrence ids stay stable while a body is unchanged.
    """
    existing = LinkOccurrence.objects.filter(silo=silo, source_page_id=page_id)
    stored = sorted(
        (row.occurrence_key, row.target_page_id, row.position_bucket, row.link_type,
         row.is_nofollow, row.is_sponsored, row.is_ugc, row.is_blank, row.start_index)
        for row in existing
    )
    if stored == sorted(link.signature for link in links):
        return False

    with transaction.atomic():
        existing.delete()
        LinkOccurrence.objects.bulk_create([
            LinkOccurrence(
                silo=silo,
                source_page_id=page_id,
                target_page_id=link.target_page_id,
                anchor_text=link.anchor_text,
                context_snippet=link.context_snippet,
                position_bucket=link.position_bucket,
                link_type=link.link_type,
                href_normalized=link.href,
                is_nofollow=link.is_nofollow,
                is_sponsored=link.is_sponsored,
                is_ugc=link.is_ugc,
                is_blank=link.is_blank,
                start_index=link.start_index,
                end_index=link.end_index,
                occurrence_key=link.occurrence_key,
            )
            for link in links
        ])
    return True


def sync_silo_occurrences(silo, pages: List[PageRecord]) -> Dict[str, Any]:
    """
    Re-parse every page body of a silo and store the resulting occurrences.

    A page that fails to parse or store is logged and skipped; the others
    are still synced. Failed page ids are listed in ``failed_page_ids``.
    """
    path_index = build_path_index(pages)
    own_host = site_host()
    lexicon = get_lexicon()
    workers = max(1, int(getattr(settings, 'LINK_SYNC_MAX_WORKERS', 4)))

    result = {'pages': len(pages), 'updated': 0, 'unchanged': 0, 'failed': 0, 'failed_page_ids': []}
    if not pages:
        return result

    with ThreadPoolExecutor(max_workers=min(workers, len(pages))) as executor:
        futures = [
            (page, executor.submit(extract_links, page.content, path_index, own_host, lexicon))
            for page in pages
        ]
        parsed = []
        for page, future in futures:
            try:
                parsed.append((page, future.result()))
            except Exception as e:
                result['failed'] += 1
                result['failed_page_ids'].append(page.id)
                logger.warning("Link sync: failed to parse page %s of silo %s: %s", page.id, silo.id, e)

    for page, links in parsed:
        try:
            if replace_page_occurrences(silo, page.id, links):
                result['updated'] += 1
            else:
                result['unchanged'] += 1
        except Exception as e:
            result['failed'] += 1
            result['failed_page_ids'].append(page.id)
            logger.warning("Link sync: failed to store occurrences for page %s: %s", page.id, e)

    if result['failed']:
        logger.warning("Link sync partial for silo %s: %s", silo.id, result)
    return result
