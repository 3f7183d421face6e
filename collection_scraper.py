"""
Steam Workshop Collection Item Sources
Resolves the item ids of a workshop collection, either through the official
GetCollectionDetails API or by scraping the public collection page.

Scraping is best effort: each extractor looks for ids in one place of the
page markup, and the results of all extractors are unioned. Steam changes its
markup without notice, so expect individual extractors to stop matching.
"""
import re
import logging
from typing import Callable, Iterable, List

import requests

logger = logging.getLogger(__name__)

STEAM_COLLECTION_API = 'https://api.steampowered.com/ISteamRemoteStorage/GetCollectionDetails/v1/'
COLLECTION_PAGE_URL = 'https://steamcommunity.com/sharedfiles/filedetails/'

BROWSER_HEADERS = {
    'User-Agent': 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
                  '(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
    'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
    'Accept-Language': 'en-US,en;q=0.5',
}

MIN_ID_LENGTH = 8


# --- Extractors: (html) -> ids ---

def extract_json_fields(html: str) -> List[str]:
    """"publishedfileid":"123456789" in embedded JavaScript data"""
    return re.findall(r'"publishedfileid"\s*:\s*"(\d+)"', html)


def extract_id_arrays(html: str) -> List[str]:
    """Named arrays such as rgPublishedFileIds = [...]"""
    patterns = (
        r'rgPublishedFileIds\s*=\s*\[([\s\S]*?)\]',
        r'g_rgPublishedFileIds\s*=\s*\[([\s\S]*?)\]',
        r'publishedFileIds\s*:\s*\[([\s\S]*?)\]',
        r'"publishedfileids"\s*:\s*\[([\s\S]*?)\]',
    )
    ids = []
    for pattern in patterns:
        match = re.search(pattern, html)
        if match:
            ids.extend(re.findall(r'\d{8,}', match.group(1)))
    return ids


def extract_data_attributes(html: str) -> List[str]:
    """data-publishedfileid="123456789" attributes"""
    return re.findall(r'data-publishedfileid\s*=\s*"(\d+)"', html)


def extract_item_links(html: str) -> List[str]:
    """Links to /sharedfiles/filedetails/?id=123456789"""
    return re.findall(r'/sharedfiles/filedetails/\?id=(\d{8,})', html)


def extract_json_objects(html: str) -> List[str]:
    """Small JSON objects carrying a publishedfileid field"""
    ids = []
    for obj in re.findall(r'\{[^}]{0,500}"publishedfileid"\s*:\s*"\d{8,}"[^}]{0,500}\}', html):
        match = re.search(r'"publishedfileid"\s*:\s*"(\d{8,})"', obj)
        if match:
            ids.append(match.group(1))
    return ids


def extract_long_arrays(html: str) -> List[str]:
    """Literal arrays of at least six workshop-id sized numbers"""
    ids = []
    for body in re.findall(r'\[\s*(\d{8,}(?:\s*,\s*\d{8,}){5,})\s*\]', html):
        ids.extend(part.strip() for part in body.split(',') if re.match(r'^\d{8,}$', part.strip()))
    return ids


def extract_script_numbers(html: str) -> List[str]:
    """9-10 digit numbers inside <script> blocks"""
    ids = []
    for script in re.findall(r'<script[^>]*>([\s\S]*?)</script>', html, re.IGNORECASE):
        ids.extend(re.findall(r'\b(\d{9,10})\b', script))
    return ids


DEFAULT_EXTRACTORS = (
    extract_json_fields,
    extract_id_arrays,
    extract_data_attributes,
    extract_item_links,
    extract_json_objects,
    extract_long_arrays,
    extract_script_numbers,
)


def merge_candidates(collection_id: str, candidate_lists: Iterable[Iterable[str]]) -> List[str]:
    """Union candidate ids keeping first-seen order, minus the collection itself"""
    seen = set()
    merged = []
    for candidates in candidate_lists:
        for item_id in candidates:
            if item_id == collection_id or len(item_id) < MIN_ID_LENGTH or item_id in seen:
                continue
            seen.add(item_id)
            merged.append(item_id)
    return merged


class CollectionApiSource:
    """Collection items from ISteamRemoteStorage/GetCollectionDetails"""

    def __init__(self, api_key: str, timeout: int = 15):
        self.api_key = api_key
        self.timeout = timeout

    def get_item_ids(self, collection_id: str) -> List[str]:
        response = requests.post(
            STEAM_COLLECTION_API,
            data={
                'key': self.api_key,
                'collectioncount': 1,
                'publishedfileids[0]': collection_id,
            },
            timeout=self.timeout
        )
        response.raise_for_status()
        data = response.json()

        item_ids = []
        for collection in data.get('response', {}).get('collectiondetails', [])[:1]:
            for child in collection.get('children', []) or []:
                item_id = str(child.get('publishedfileid', ''))
                if item_id and item_id not in item_ids:
                    item_ids.append(item_id)
        return item_ids


class CollectionPageScraper:
    """Collection items scraped from the public collection page"""

    def __init__(self, extractors: Iterable[Callable[[str], List[str]]] = DEFAULT_EXTRACTORS, timeout: int = 15):
        self.extractors = tuple(extractors)
        self.timeout = timeout

    def fetch_page(self, collection_id: str) -> str:
        logger.info(f"Fetching collection page for {collection_id}")
        response = requests.get(
            COLLECTION_PAGE_URL,
            params={'id': collection_id},
            headers=BROWSER_HEADERS,
            timeout=self.timeout
        )
        if not response.ok:
            raise requests.HTTPError(f"Failed to fetch collection: {response.status_code}", response=response)
        return response.text

    def extract(self, html: str, collection_id: str) -> List[str]:
        candidate_lists = []
        for extractor in self.extractors:
            found = extractor(html)
            logger.debug(f"{extractor.__name__}: {len(found)} candidate(s)")
            candidate_lists.append(found)
        item_ids = merge_candidates(collection_id, candidate_lists)
        logger.info(f"Collection {collection_id}: scraped {len(item_ids)} item id(s) from {len(html)} bytes")
        return item_ids

    def get_item_ids(self, collection_id: str) -> List[str]:
        return self.extract(self.fetch_page(collection_id), collection_id)
