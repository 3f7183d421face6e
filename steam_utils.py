import re
import math
import logging
from typing import Dict, List, Optional
from urllib.parse import urlparse, parse_qs

import requests

from config import Config
from collection_scraper import CollectionApiSource, CollectionPageScraper

logger = logging.getLogger(__name__)

STEAM_WORKSHOP_API = 'https://api.steampowered.com/ISteamRemoteStorage/GetPublishedFileDetails/v1/'
STEAM_WORKSHOP_SEARCH = 'https://api.steampowered.com/IPublishedFileService/QueryFiles/v1/'

# IPublishedFileService query_type values
QUERY_TYPES = {
    'vote': 0,  # RankedByVote
    'trending': 3,  # RankedByTrend
    'subscriptions': 12,  # RankedByTextSearch, re-sorted by subscriptions below
}

MAX_ITEMS_PER_REQUEST = 100

# "-- \BB_CommonSense;\CSB42MP" followed by the "-- 2875848298;..." workshop line
DEDICATED_SERVER_BLOCK = re.compile(r'--\s*\\?([A-Za-z_][A-Za-z0-9_;\\]*?)(?:\s*\n\s*--\s*\d)')
MOD_ID_PATTERNS = (
    re.compile(r'Mod\s*ID[:\s]+([A-Za-z_][A-Za-z0-9_]*)', re.IGNORECASE),
    re.compile(r'ModID[:\s]+([A-Za-z_][A-Za-z0-9_]*)', re.IGNORECASE),
    re.compile(r'Mod_ID[:\s]+([A-Za-z_][A-Za-z0-9_]*)', re.IGNORECASE),
)


class WorkshopError(Exception):
    """Steam Workshop request failure with the HTTP status to report"""

    def __init__(self, message, status_code=500, **details):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details

    def to_dict(self):
        return {'error': self.message, **self.details}


def parse_workshop_link(link: str) -> Optional[str]:
    """
    Extract a workshop item id from a link

    Accepts a bare id, https://steamcommunity.com/sharedfiles/filedetails/?id=N
    and steam://url/CommunityFilePage/N; anything else falls back to the first
    run of 8 or more digits.
    """
    link = (link or '').strip()
    if re.match(r'^\d+$', link):
        return link

    parsed = urlparse(link)
    if parsed.scheme and (parsed.netloc or parsed.path):
        if 'steamcommunity.com' in parsed.netloc:
            id_param = parse_qs(parsed.query).get('id', [''])[0]
            if re.match(r'^\d+$', id_param):
                return id_param
        if parsed.scheme == 'steam':
            last_part = (parsed.netloc + parsed.path).rstrip('/').split('/')[-1]
            if re.match(r'^\d+$', last_part):
                return last_part

    match = re.search(r'\d{8,}', link)
    return match.group(0) if match else None


def parse_collection_id(link: str) -> Optional[str]:
    """Extract a collection id from a link (same formats as workshop items)"""
    return parse_workshop_link(link)


def calculate_popularity_score(item: Dict) -> float:
    """Score = log10(subscriptions + 1) * vote ratio * (1 + favorites / 1000)"""
    subscriptions = item.get('subscriptions') or item.get('lifetime_subscriptions') or 0
    favorites = item.get('favorited') or item.get('lifetime_favorited') or 0
    vote_data = item.get('vote_data') or {}
    votes_up = vote_data.get('votes_up') or 0
    votes_down = vote_data.get('votes_down') or 0

    total_votes = votes_up + votes_down
    vote_ratio = votes_up / total_votes if total_votes > 0 else 0.5

    score = math.log10(subscriptions + 1) * vote_ratio * (1 + favorites / 1000)
    return round(score, 2)


def extract_mod_id(description: str) -> str:
    """
    Find the in-game Mod ID in a workshop description

    Returns:
        str: First Mod ID found, or '' when the description names none
    """
    description = description or ''

    match = DEDICATED_SERVER_BLOCK.search(description)
    if match:
        mod_ids = [mod_id for mod_id in match.group(1).replace('\\', '').split(';') if mod_id]
        if mod_ids:
            return mod_ids[0].strip()

    for pattern in MOD_ID_PATTERNS:
        match = pattern.search(description)
        if match:
            return match.group(1).strip()

    return ''


class SteamWorkshopClient:
    """Steam Web API access for Project Zomboid workshop items"""

    def __init__(self, api_key=None, app_id=None, timeout=None):
        self.api_key = api_key if api_key is not None else Config.STEAM_API_KEY
        self.app_id = app_id or Config.STEAM_APP_ID
        self.timeout = timeout or Config.STEAM_REQUEST_TIMEOUT

    def _require_key(self):
        if not self.api_key:
            raise WorkshopError('Steam API key is not configured. Set STEAM_API_KEY in the environment', 500)

    def search(self, query: str, sort_by: str = 'subscriptions', limit: int = 50) -> Dict:
        """
        Search the workshop

        Args:
            query: Search text
            sort_by: 'subscriptions', 'trending' or 'vote'
            limit: Results per page (capped at 100)

        Returns:
            dict: {success, response: {publishedfiledetails, total}}
        """
        self._require_key()
        if not query:
            raise WorkshopError('Query is required for search', 400)

        limit = max(1, min(int(limit), 100))
        params = {
            'key': self.api_key,
            'query_type': QUERY_TYPES.get(sort_by, QUERY_TYPES['subscriptions']),
            'page': 1,
            'numperpage': limit,
            'appid': self.app_id,
            'search_text': query,
            'return_details': 1,
            'return_vote_data': 1,
            'return_short_description': 1,
        }

        response = requests.get(STEAM_WORKSHOP_SEARCH, params=params, timeout=self.timeout)
        if not response.ok:
            raise WorkshopError(f"Steam API request failed: {response.status_code} - {response.text}", 502)

        data = response.json()
        details = data.get('response', {}).get('publishedfiledetails')
        if details is None:
            return data

        results = [item for item in details if item.get('result') == 1]
        if sort_by == 'subscriptions':
            results.sort(
                key=lambda item: item.get('subscriptions') or item.get('lifetime_subscriptions') or 0,
                reverse=True
            )
        results = [dict(item, popularity_score=calculate_popularity_score(item)) for item in results]

        logger.info(f"Workshop search '{query}' ({sort_by}): {len(results)} result(s)")
        return {
            'success': True,
            'response': {
                'publishedfiledetails': results,
                'total': data['response'].get('total') or len(results),
            }
        }

    def get_file_details(self, file_ids: List[str]) -> Dict:
        """Raw GetPublishedFileDetails response for the given ids"""
        self._require_key()
        payload = {'key': self.api_key, 'itemcount': len(file_ids)}
        for index, file_id in enumerate(file_ids):
            payload[f'publishedfileids[{index}]'] = str(file_id)

        response = requests.post(STEAM_WORKSHOP_API, data=payload, timeout=self.timeout)
        if not response.ok:
            raise WorkshopError(f"Steam API request failed: {response.status_code} - {response.text}", 502)
        return response.json()

    def get_mod_details(self, mod_ids: List) -> Dict:
        """
        Workshop details for the numeric ids in mod_ids, keyed by id

        Returns:
            dict: {mods: {id: details}, rawResponse}
        """
        workshop_ids = [str(mod_id) for mod_id in mod_ids if re.match(r'^\d+$', str(mod_id))]
        if not workshop_ids:
            return {'mods': {}, 'rawResponse': None}

        data = self.get_file_details(workshop_ids)
        mods = {}
        for detail in data.get('response', {}).get('publishedfiledetails', []):
            file_id = detail.get('publishedfileid')
            if not file_id:
                continue

            preview = detail.get('preview_url') or detail.get('preview') or ''
            mods[file_id] = {
                'id': file_id,
                'modId': extract_mod_id(detail.get('description', '')),
                'title': detail.get('title') or file_id,
                'description': detail.get('description') or '',
                'preview_url': preview,
                'preview_image': preview,
                'file_size': detail.get('file_size') or 0,
                'time_created': detail.get('time_created') or 0,
                'time_updated': detail.get('time_updated') or 0,
                'subscriptions': detail.get('subscriptions') or 0,
                'favorited': detail.get('favorited') or 0,
                'creator': detail.get('creator') or '',
                'tags': detail.get('tags') or [],
                'result': detail.get('result'),
            }

        logger.info(f"Parsed details for {len(mods)} of {len(workshop_ids)} workshop item(s)")
        return {'mods': mods, 'rawResponse': data.get('response')}

    def get_collection_item_ids(self, collection_id: str) -> List[str]:
        """Item ids of a collection: official API first, page scraping as fallback"""
        item_ids = []
        try:
            item_ids = CollectionApiSource(self.api_key, self.timeout).get_item_ids(collection_id)
        except (requests.RequestException, ValueError) as e:
            logger.info(f"Collection API not available ({e}), trying page scraping")

        if item_ids:
            return item_ids

        try:
            return CollectionPageScraper(timeout=self.timeout).get_item_ids(collection_id)
        except requests.RequestException as e:
            logger.error(f"Error fetching collection {collection_id}: {e}")
            raise WorkshopError(
                f"Could not load the mod list of the collection: {e}",
                500,
                collectionId=collection_id,
                hint='The collection may be private, need a login, or Steam changed its page layout.'
            )

    def get_collection(self, link: str) -> Dict:
        """
        Resolve a collection link to the details of its items

        Returns:
            dict: {success, collectionId, items, total}
        """
        self._require_key()
        collection_id = parse_collection_id(link)
        if not collection_id:
            raise WorkshopError('Could not extract collection ID from link', 400)

        item_ids = self.get_collection_item_ids(collection_id)
        if not item_ids:
            raise WorkshopError(
                'Collection is empty or could not be parsed.',
                404,
                collectionId=collection_id,
                hint='Make sure the collection is public and contains mods.'
            )

        items = []
        for start in range(0, len(item_ids), MAX_ITEMS_PER_REQUEST):
            batch = item_ids[start:start + MAX_ITEMS_PER_REQUEST]
            logger.info(f"Fetching batch {start // MAX_ITEMS_PER_REQUEST + 1}: {len(batch)} item(s)")
            try:
                data = self.get_file_details(batch)
            except (WorkshopError, requests.RequestException) as e:
                # Skip the failed batch, keep the others
                logger.error(f"Steam API request failed for batch: {e}")
                continue

            for detail in data.get('response', {}).get('publishedfiledetails', []):
                if not detail.get('publishedfileid'):
                    continue
                items.append({
                    'publishedfileid': detail['publishedfileid'],
                    'title': detail.get('title') or detail['publishedfileid'],
                    'description': detail.get('description') or '',
                    'preview_url': detail.get('preview_url') or '',
                    'file_size': detail.get('file_size') or 0,
                    'subscriptions': detail.get('subscriptions') or 0,
                    'favorited': detail.get('favorited') or 0,
                    'time_created': detail.get('time_created') or 0,
                    'time_updated': detail.get('time_updated') or 0,
                })

        logger.info(f"Fetched details for {len(items)} of {len(item_ids)} collection item(s)")
        return {
            'success': True,
            'collectionId': collection_id,
            'items': items,
            'total': len(items),
        }
