"""Composition root: wire the engines to a set of stores."""

from dataclasses import dataclass

from pairbracket.bracket import BracketEngine
from pairbracket.group_builder import GroupBuilder
from pairbracket.group_matches import GroupMatchEngine
from pairbracket.pair_formation import PairFormation
from pairbracket.standings import DEFAULT_DRAW_SEED, StandingsEngine


@dataclass
class Engines:
    """The engines of one tournament backend."""

    pair_formation: PairFormation
    group_builder: GroupBuilder
    group_matches: GroupMatchEngine
    standings: StandingsEngine
    bracket: BracketEngine


def build_engines(stores, draw_seed: int = DEFAULT_DRAW_SEED) -> Engines:
    """Build every engine on top of ``stores``.

    Args:
        stores: Object exposing ``pairs``, ``partnerships``, ``groups``, ``matches``,
            ``matchups`` and ``player_stats`` stores (``MemoryBackend``
            or ``SQLBackend``)
        draw_seed: Seed of the pair formation and standings draws
    """
    standings = StandingsEngine(
        stores.pairs,
        stores.groups,
        stores.matches,
        stores.player_stats,
        draw_seed=draw_seed,
    )
    return Engines(
        pair_formation=PairFormation(stores.pairs, stores.partnerships, draw_seed=draw_seed),
        group_builder=GroupBuilder(stores.pairs, stores.groups, stores.player_stats),
        group_matches=GroupMatchEngine(
            stores.pairs,
            stores.groups,
            stores.matches,
            stores.matchups,
            stores.player_stats,
            standings,
        ),
        standings=standings,
        bracket=BracketEngine(
            stores.pairs,
            stores.groups,
            stores.matches,
            stores.matchups,
            stores.player_stats,
        ),
    )
