# ============================================================================
# TOKEN TRAITS
# ============================================================================
# EPOCH: 1 - MINT COORDINATION
# STATUS: Infrastructure - Deterministic trait derivation for metadata
# PURPOSE: Weapon, stance, element, rank, accessory, stats and rarity per token
# CREATED: 19 OCT 2026
# ============================================================================
"""
Token traits.

Every trait is a pure function of (token_id, breed): a sha256 of
"<token>-<breed>-<trait type>" picks from a weighted table, so the same
token always produces the same metadata, including on regeneration.

Weights are the squared rarity score, so rare entries thin out quickly.
"""

import hashlib
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

# (value, rarity, rarity score)
Trait = Tuple[str, str, int]

BREED_RARITY: Dict[str, str] = {
    "Tabby": "Common",
    "Siamese": "Common",
    "Calico": "Uncommon",
    "Maine Coon": "Uncommon",
    "Bengal": "Rare",
    "Bombay": "Rare",
    "Persian": "Epic",
    "Sphynx": "Epic",
    "Nyan": "Legendary",
    "Shadow": "Legendary",
}

WEAPONS: List[Trait] = [
    ("Katana", "Common", 30),
    ("Shuriken", "Common", 25),
    ("Nunchucks", "Uncommon", 20),
    ("Kunai", "Uncommon", 18),
    ("Sai", "Rare", 15),
    ("Bo Staff", "Rare", 12),
    ("Twin Blades", "Epic", 10),
    ("Kusarigama", "Epic", 8),
    ("War Fan", "Legendary", 5),
    ("Ghost Dagger", "Legendary", 3),
]

STANCES: List[Trait] = [
    ("Attack", "Common", 30),
    ("Defense", "Common", 25),
    ("Stealth", "Uncommon", 20),
    ("Agility", "Uncommon", 18),
    ("Focus", "Rare", 15),
    ("Shadow", "Rare", 12),
    ("Crane", "Epic", 10),
    ("Berserker", "Epic", 8),
    ("Dragon", "Legendary", 5),
    ("Void", "Legendary", 3),
]

ELEMENTS: List[Trait] = [
    ("Fire", "Common", 30),
    ("Water", "Common", 25),
    ("Earth", "Uncommon", 20),
    ("Wind", "Uncommon", 18),
    ("Lightning", "Rare", 15),
    ("Ice", "Rare", 12),
    ("Light", "Epic", 10),
    ("Shadow", "Epic", 8),
    ("Void", "Legendary", 5),
    ("Cosmic", "Legendary", 3),
]

RANKS: List[Trait] = [
    ("Novice", "Common", 30),
    ("Adept", "Common", 25),
    ("Elite", "Uncommon", 20),
    ("Veteran", "Uncommon", 18),
    ("Master", "Rare", 15),
    ("Shadow Master", "Rare", 12),
    ("Mystic", "Epic", 10),
    ("Warlord", "Epic", 8),
    ("Legendary", "Legendary", 5),
    ("Immortal", "Legendary", 3),
]

ACCESSORIES: List[Trait] = [
    ("Headband", "Common", 30),
    ("Scarf", "Common", 25),
    ("Armor Piece", "Uncommon", 20),
    ("Belt", "Uncommon", 18),
    ("Gloves", "Rare", 15),
    ("Face Mask", "Rare", 12),
    ("Enchanted Amulet", "Epic", 10),
    ("Spirit Companion", "Epic", 8),
    ("Ancient Scroll", "Legendary", 5),
    ("Celestial Mark", "Legendary", 3),
]

ACCESSORY_CHANCE_PERCENT = 75

# Stat bonuses on top of a base of 5 each
_STATS = ("agility", "stealth", "power", "intelligence")
_BREED_BONUS: Dict[str, Dict[str, int]] = {
    "Tabby": {"agility": 2, "power": 1},
    "Siamese": {"stealth": 2, "intelligence": 1},
    "Maine Coon": {"power": 3, "intelligence": 1},
    "Bengal": {"agility": 3, "power": 1},
    "Calico": {"intelligence": 2, "stealth": 1},
    "Bombay": {"stealth": 3},
    "Persian": {"intelligence": 3, "agility": -1},
    "Sphynx": {"stealth": 1, "intelligence": 2},
    "Nyan": {"agility": 2, "power": 2},
    "Shadow": {"stealth": 3, "power": 2, "agility": 1},
}
_WEAPON_BONUS: Dict[str, Dict[str, int]] = {
    "Katana": {"power": 2},
    "Shuriken": {"agility": 1, "stealth": 1},
    "Nunchucks": {"agility": 2},
    "Kunai": {"stealth": 2},
    "Sai": {"power": 1, "agility": 1},
    "Bo Staff": {"intelligence": 2},
    "Twin Blades": {"agility": 2, "power": 1},
    "Kusarigama": {"stealth": 1, "intelligence": 2},
    "War Fan": {"intelligence": 2, "power": 1},
    "Ghost Dagger": {"stealth": 3, "power": 1},
}
_ELEMENT_BONUS: Dict[str, Dict[str, int]] = {
    "Fire": {"power": 2},
    "Water": {"agility": 2},
    "Earth": {"power": 1, "intelligence": 1},
    "Wind": {"agility": 3},
    "Lightning": {"agility": 2, "power": 1},
    "Ice": {"intelligence": 2, "stealth": 1},
    "Shadow": {"stealth": 3},
    "Light": {"intelligence": 2, "power": 1},
    "Void": {"power": 2, "stealth": 2},
    "Cosmic": {"power": 2, "intelligence": 2},
}

RARITY_POINTS: Dict[str, int] = {
    "Common": 25,
    "Uncommon": 45,
    "Rare": 65,
    "Epic": 80,
    "Legendary": 90,
}

# (minimum score, tier), highest first
RARITY_TIERS: List[Tuple[int, str]] = [
    (85, "Epic"),
    (70, "Rare"),
    (60, "Uncommon"),
    (40, "Common"),
]


def _hash_int(token_id: int, breed: str, trait_type: str, hex_digits: int = 8) -> int:
    digest = hashlib.sha256(f"{token_id}-{breed}-{trait_type}".encode("utf-8")).hexdigest()
    return int(digest[:hex_digits], 16)


def pick_weighted(table: List[Trait], token_id: int, breed: str, trait_type: str) -> Trait:
    """Choose one entry; weight is rarity score squared."""
    target = _hash_int(token_id, breed, trait_type) / 2 ** 32 * sum(score ** 2 for _, _, score in table)
    cumulative = 0
    for entry in table:
        cumulative += entry[2] ** 2
        if target <= cumulative:
            return entry
    return table[0]


def rarity_tier(score: int) -> str:
    for minimum, tier in RARITY_TIERS:
        if score >= minimum:
            return tier
    return "Standard"


@dataclass
class TokenTraits:
    """Derived traits for one token."""
    breed: str
    traits: Dict[str, Trait] = field(default_factory=dict)
    stats: Dict[str, int] = field(default_factory=dict)
    rarity_score: int = 0

    @property
    def rarity(self) -> str:
        return rarity_tier(self.rarity_score)

    def attributes(self) -> List[Dict[str, Any]]:
        """ERC-721 attribute list: named traits first, then numeric stats."""
        attributes: List[Dict[str, Any]] = [{"trait_type": "Breed", "value": self.breed}]
        for trait_type, (value, _, _) in self.traits.items():
            attributes.append({"trait_type": trait_type, "value": value})
        for stat in _STATS:
            attributes.append({
                "trait_type": stat.capitalize(),
                "value": self.stats[stat],
                "display_type": "number",
            })
        attributes.append({"trait_type": "Rarity", "value": self.rarity})
        return attributes


def derive_traits(token_id: int, breed: str) -> TokenTraits:
    """Traits, stats and rarity for a token. Pure; no I/O."""
    traits: Dict[str, Trait] = {
        "Weapon": pick_weighted(WEAPONS, token_id, breed, "weapon"),
        "Stance": pick_weighted(STANCES, token_id, breed, "stance"),
        "Element": pick_weighted(ELEMENTS, token_id, breed, "element"),
        "Rank": pick_weighted(RANKS, token_id, breed, "rank"),
    }
    if _hash_int(token_id, breed, "hasAccessory", 4) % 100 < ACCESSORY_CHANCE_PERCENT:
        traits["Accessory"] = pick_weighted(ACCESSORIES, token_id, breed, "accessory")

    stats = {stat: 5 for stat in _STATS}
    for bonus in (
        _BREED_BONUS.get(breed, {}),
        _WEAPON_BONUS.get(traits["Weapon"][0], {}),
        _ELEMENT_BONUS.get(traits["Element"][0], {}),
    ):
        for stat, delta in bonus.items():
            stats[stat] += delta
    for stat in stats:
        stats[stat] += _hash_int(token_id, breed, f"stat-{stat}", 2) % 4

    rarities = [BREED_RARITY.get(breed, "Common")] + [rarity for _, rarity, _ in traits.values()]
    score = round(sum(RARITY_POINTS[r] for r in rarities) / len(rarities))
    return TokenTraits(breed=breed, traits=traits, stats=stats, rarity_score=score)


__all__ = [
    "TokenTraits",
    "derive_traits",
    "pick_weighted",
    "rarity_tier",
]
