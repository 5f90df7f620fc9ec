"""Name search over a user's own files and folders."""

import logging
from dataclasses import dataclass, field
from typing import Any, final

from django.conf import settings

from filehost.apps.files.exceptions import InvalidInputError
from filehost.apps.files.models import File, Folder

# User type for Django's dynamic user model
_User = Any

logger = logging.getLogger(__name__)


@final
@dataclass(frozen=True, slots=True)
class SearchResults:
    """Matching live folders and files."""

    folders: list[Folder] = field(default_factory=list)
    files: list[File] = field(default_factory=list)


def search(user: _User, query: str) -> SearchResults:
    """Case-insensitive substring search on item names.

    Only live items owned by the user are returned; the root folder is
    never a match. Each list is capped at ``FILEHOST_SEARCH_LIMIT``.

    Args:
        user: Owner of the items.
        query: Substring to look for.

    Returns:
        SearchResults ordered by name.

    Raises:
        InvalidInputError: If the query is empty.
    """
    term = (query or '').strip()
    if not term:
        raise InvalidInputError('Search query cannot be empty')

    limit = settings.FILEHOST_SEARCH_LIMIT
    folders = Folder.objects.filter(
        owner=user,
        parent__isnull=False,
        name__icontains=term,
    ).order_by('name')[:limit]
    files = File.objects.filter(
        owner=user,
        name__icontains=term,
    ).order_by('name')[:limit]

    results = SearchResults(folders=list(folders), files=list(files))
    logger.debug(
        'Search %r for user %s: %d folders, %d files',
        term,
        user.pk,
        len(results.folders),
        len(results.files),
    )
    return results
