"""
RoomIdentityManager for the transcript parser.

Decides, when a room title and its description are seen, whether the
observation denotes a room already in the map or a new one. A room's
fingerprint is learned only later (see PortalManager), so at this point the
evidence is the name, the description text and the declared exit set.

Resolution order:
1. exact name+description match among rooms without a fingerprint
2. fingerprinted rooms with the exact name+description, disambiguated by
   exit signature
3. fuzzy description match among same-name rooms without a fingerprint
4. a new room under a composite key that has never been issued before
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Set, Tuple

from map_graph import Room, make_namedesc_key
from managers.base_manager import BaseManager
from transcript.scanners import RoomBlock

# Transient presence clauses removed before fuzzy comparison
DYNAMIC_CONTENT_PATTERNS = (
    re.compile(
        r"\b(?:A|An|The)\s+[\w ,'-]{1,60}?\s+(?:is|are|stands|sits|sleeps|rests|waits)\s+here\b[^.!?]*[.!?]?",
        re.IGNORECASE,
    ),
    re.compile(
        r"\b(?:A|An|The)\s+[\w ,'-]{1,60}?\s+(?:lies|lie|floats|hangs|has been left)\s+here\b[^.!?]*[.!?]?",
        re.IGNORECASE,
    ),
)
_WORD_RE = re.compile(r"[a-z0-9']+")
_SPACE_RE = re.compile(r"\s+")


class ResolutionMethod(str, Enum):
    EXACT = "exact"
    SIGNATURE = "signature"
    SOLE_CANDIDATE = "sole_candidate"
    SIMILAR = "similar"
    NEW = "new"
    AMBIGUOUS = "ambiguous"


@dataclass
class Resolution:
    room_key: str
    method: ResolutionMethod

    @property
    def is_new(self) -> bool:
        return self.method in (ResolutionMethod.NEW, ResolutionMethod.AMBIGUOUS)

    @property
    def is_heuristic(self) -> bool:
        """True when a fingerprinted room was reused on exit-signature evidence."""
        return self.method in (ResolutionMethod.SIGNATURE, ResolutionMethod.SOLE_CANDIDATE)


def normalize_description(description: str) -> str:
    """Strip NPC/item presence clauses and collapse whitespace."""
    text = description
    for pattern in DYNAMIC_CONTENT_PATTERNS:
        text = pattern.sub(" ", text)
    return _SPACE_RE.sub(" ", text).strip()


def _significant_words(text: str) -> Set[str]:
    return {word for word in _WORD_RE.findall(text.lower()) if len(word) > 2}


def description_similarity(first: str, second: str) -> float:
    """Token-set (Jaccard) similarity over words longer than 2 characters."""
    words_first = _significant_words(first)
    words_second = _significant_words(second)
    union = words_first | words_second
    if not union:
        return 1.0 if first == second else 0.0
    return len(words_first & words_second) / len(union)


class RoomIdentityManager(BaseManager):
    """
    Resolves room observations to canonical room keys.

    Responsibilities:
    - Reusing known rooms on revisit (idempotent re-observation)
    - Exit-signature disambiguation between fingerprinted look-alikes
    - Fuzzy matching that ignores transient NPC/item text
    - Allocating never-reused composite keys for new rooms
    """

    def __init__(self, logger, config, state, graph):
        super().__init__(logger, config, state, graph, "room_identity_manager")
        self.resolution_counts = {method: 0 for method in ResolutionMethod}

    def reset(self) -> None:
        self.resolution_counts = {method: 0 for method in ResolutionMethod}

    def resolve(self, name: str, block: RoomBlock) -> Resolution:
        """
        Resolve an observed room to a key, creating the room if needed.

        Reused rooms get the observed exits, NPCs and items unioned in.

        Args:
            name: Room title
            block: Description, declared exits and entities read after the title

        Returns:
            Resolution with the canonical key and how it was found
        """
        room_key, method = self.find_existing_room_key(name, block.description, block.exits)

        if room_key is not None:
            room = self.graph.rooms[room_key]
            room.merge_observation(block.exits, block.npcs, block.items)
            self.log_debug(
                f"Revisited room: {name} ({method.value})",
                event_type="room_revisited",
                room_key=room_key,
                method=method.value,
            )
        else:
            room_key = self.allocate_room_key(name, block.description)
            self.graph.add_room(
                Room(
                    key=room_key,
                    name=name,
                    description=block.description,
                    exits=list(block.exits),
                    npcs=list(block.npcs),
                    items=list(block.items),
                    terrain=self.config.default_terrain,
                )
            )
            self.log_info(
                f"{name} ({len(block.exits)} exits, {len(block.npcs)} NPCs, {len(block.items)} items)",
                event_type="room_created",
                room_key=room_key,
                method=method.value,
            )

        self.resolution_counts[method] += 1
        return Resolution(room_key=room_key, method=method)

    def find_existing_room_key(
        self, name: str, description: str, exits: List[str]
    ) -> Tuple[Optional[str], ResolutionMethod]:
        """
        Look for a known room matching the observation.

        Returns:
            (room key, method) on a match; (None, NEW) or (None, AMBIGUOUS)
            when a new room should be created
        """
        exact_matches = self.graph.find_rooms_by_name_and_description(name, description)

        for room in exact_matches:
            if not room.portal_key:
                return room.key, ResolutionMethod.EXACT

        candidates = [room for room in exact_matches if room.portal_key]
        if candidates:
            signature = frozenset(exits)
            signature_matches = [
                room for room in candidates if room.exit_signature() == signature
            ]
            if len(signature_matches) == 1:
                return signature_matches[0].key, ResolutionMethod.SIGNATURE
            if not signature_matches and len(candidates) == 1:
                # Exit list may have been cut short on an earlier visit
                return candidates[0].key, ResolutionMethod.SOLE_CANDIDATE

            self._record_ambiguity(name, exits, candidates, len(signature_matches))
            return None, ResolutionMethod.AMBIGUOUS

        similar_key = self._find_similar_room_key(name, description)
        if similar_key is not None:
            return similar_key, ResolutionMethod.SIMILAR

        return None, ResolutionMethod.NEW

    def _find_similar_room_key(self, name: str, description: str) -> Optional[str]:
        normalized = normalize_description(description)
        short_length = self.config.short_description_length

        for room in self.graph.rooms.values():
            if room.name != name or room.portal_key:
                continue
            existing = normalize_description(room.description)
            if len(normalized) < short_length or len(existing) < short_length:
                if normalized == existing:
                    return room.key
                continue
            similarity = description_similarity(existing, normalized)
            if similarity >= self.config.similarity_threshold:
                self.log_debug(
                    f"Fuzzy match for {name} (similarity {similarity:.3f})",
                    event_type="room_similarity_match",
                    room_key=room.key,
                    similarity=similarity,
                )
                return room.key
        return None

    def _record_ambiguity(
        self, name: str, exits: List[str], candidates: List[Room], signature_matches: int
    ) -> None:
        ambiguity = {
            "line": self.state.line_number,
            "name": name,
            "exits": sorted(exits),
            "candidates": [room.key for room in candidates],
            "signature_matches": signature_matches,
        }
        self.state.ambiguities.append(ambiguity)
        self.log_warning(
            f"Ambiguous room identity for {name}: {len(candidates)} fingerprinted candidates, "
            f"{signature_matches} exit-signature matches; treating as a new room",
            event_type="identity_ambiguous",
            room_name=name,
            candidates=ambiguity["candidates"],
            signature_matches=signature_matches,
        )

    def allocate_room_key(self, name: str, description: str) -> str:
        """
        Issue a composite key that has never been issued in this session.

        A composite used before, even by a room since merged or renamed, gets
        a "#<n>" counter suffix.
        """
        base_key = make_namedesc_key(name, description)
        candidate = base_key
        counter = self.state.room_key_counters.get(base_key, 1)

        while candidate in self.state.issued_room_keys or candidate in self.graph.rooms:
            counter += 1
            candidate = f"{base_key}#{counter}"

        self.state.room_key_counters[base_key] = counter
        self.state.issued_room_keys.add(candidate)
        return candidate

    def get_status(self):
        status = super().get_status()
        status["resolutions"] = {
            method.value: count for method, count in self.resolution_counts.items()
        }
        return status
