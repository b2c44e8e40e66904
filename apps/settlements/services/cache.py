"""
Generation-versioned cache for settlement reads.

Every group and every split bill has a generation counter stored in the
cache. Cached plans, balances and summaries are keyed by the generation
that was current *before* their snapshot was loaded, and every write
(bill creation, participant transitions) bumps the generation, once
immediately and once after commit.

A reader whose snapshot overlaps a write therefore stores its result
under a generation nobody asks for again. Entries never expire on their
own; only a generation bump makes them unreachable.
"""

import logging
import time

from django.conf import settings
from django.core.cache import caches
from django.db import transaction

logger = logging.getLogger(__name__)

GROUP = 'group'
SPLIT_BILL = 'split_bill'

# Cached kinds per scope, dropped eagerly when the generation moves
KINDS = {
    GROUP: ('plan', 'balances'),
    SPLIT_BILL: ('summary',),
}

_MISSING = object()


def _cache():
    return caches[getattr(settings, 'SETTLEMENT_CACHE_ALIAS', 'default')]


def _fresh_generation():
    # Lost counters restart from the clock, never from a value used before
    return time.time_ns()


def _prefix(scope, object_id):
    return f"settlements:{scope}:{object_id}"


def generation_key(scope, object_id):
    return f"{_prefix(scope, object_id)}:generation"


def versioned_key(scope, object_id, kind, generation):
    return f"{_prefix(scope, object_id)}:{kind}:v{generation}"


def current_generation(scope, object_id):
    """Return the scope's generation, initialising it on first use."""
    cache = _cache()
    key = generation_key(scope, object_id)
    generation = cache.get(key)
    if generation is None:
        cache.add(key, _fresh_generation(), timeout=None)
        generation = cache.get(key)
    return generation


def get_or_compute(scope, object_id, kind, compute):
    """
    Return the cached ``kind`` value for a group or bill, computing it on a miss.

    The result is stored only if the generation did not move while
    ``compute`` ran.
    """
    cache = _cache()
    generation = current_generation(scope, object_id)
    key = versioned_key(scope, object_id, kind, generation)

    value = cache.get(key, _MISSING)
    if value is not _MISSING:
        return value

    value = compute()
    if current_generation(scope, object_id) == generation:
        cache.set(key, value, timeout=None)
    else:
        logger.debug("Not caching %s: generation moved while computing", key)
    return value


def _bump(scopes):
    cache = _cache()
    for scope, object_id in scopes:
        key = generation_key(scope, object_id)
        previous = cache.get(key)
        if previous is not None:
            cache.delete_many([
                versioned_key(scope, object_id, kind, previous) for kind in KINDS[scope]
            ])
        try:
            cache.incr(key)
        except ValueError:
            cache.add(key, _fresh_generation(), timeout=None)
    logger.debug(
        "Bumped settlement cache generation for %s",
        ', '.join(_prefix(scope, object_id) for scope, object_id in scopes),
    )


def invalidate(group_id=None, split_bill_id=None):
    """Make cached plans/balances of a group and the summary of a bill unreachable."""
    scopes = []
    if group_id is not None:
        scopes.append((GROUP, group_id))
    if split_bill_id is not None:
        scopes.append((SPLIT_BILL, split_bill_id))
    if not scopes:
        return

    _bump(scopes)
    transaction.on_commit(lambda: _bump(scopes))
