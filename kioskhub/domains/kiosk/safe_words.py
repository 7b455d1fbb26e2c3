"""Human-friendly word list for kiosk codes.

Words are short, easy to pronounce and free of homophones so a code can be
read aloud across a room.
"""

from __future__ import annotations

import secrets

SAFE_WORDS = (
    # Animals
    "bear", "bird", "cat", "dog", "duck", "fish", "frog", "hawk", "lion", "owl",
    "panda", "seal", "shark", "tiger", "whale", "wolf", "zebra", "crab", "deer", "dove",
    "eagle", "fox", "goat", "hare", "heron", "horse", "koala", "lamb", "lark", "lynx",
    "moose", "otter", "puma", "rabbit", "raven", "robin", "sheep", "sloth", "snail", "swan",
    "badger", "beaver", "bison", "camel", "cobra", "condor", "crane", "dolphin", "falcon", "finch",
    "gecko", "giraffe", "goose", "hippo", "ibex", "iguana", "jaguar", "kiwi", "lemur", "llama",
    "macaw", "magpie", "marlin", "meerkat", "newt", "osprey", "parrot", "pelican", "penguin", "puffin",
    # Nature
    "acorn", "beach", "bloom", "canyon", "cedar", "cliff", "cloud", "coast", "coral", "creek",
    "dune", "fern", "field", "forest", "frost", "garden", "glen", "grove", "hill", "island",
    "lake", "leaf", "lily", "marsh", "meadow", "mist", "moon", "moss", "oak", "ocean",
    "orchid", "palm", "peak", "pine", "pond", "rain", "ridge", "river", "rock", "rose",
    "sand", "shore", "sky", "snow", "spring", "star", "stone", "stream", "sun", "tide",
    "trail", "tree", "valley", "willow", "wind", "aspen", "aurora", "bamboo", "birch", "brook",
    "delta", "desert", "ember", "glacier", "horizon", "jungle", "lagoon", "oasis", "pebble", "prairie",
    # Colors and shapes
    "amber", "aqua", "azure", "bronze", "cream", "gold", "green", "indigo", "ivory", "jade",
    "lime", "mint", "navy", "olive", "orange", "peach", "pearl", "plum", "ruby", "sage",
    "silver", "teal", "violet", "arch", "circle", "cone", "cube", "dome", "oval", "sphere",
    "arc", "beam", "crown", "diamond", "globe", "helix", "hoop", "knot", "loop", "orb",
    "prism", "pyramid", "ring", "shell", "spiral", "square", "wedge", "zigzag", "comet", "planet",
    # Food and things
    "apple", "bagel", "berry", "bread", "butter", "cocoa", "cookie", "honey", "lemon", "mango",
    "melon", "muffin", "noodle", "pasta", "pepper", "pickle", "pizza", "pretzel", "salad", "waffle",
    "anchor", "banjo", "basket", "bell", "bucket", "button", "candle", "castle", "compass", "drum",
    "feather", "flute", "hammer", "kettle", "ladder", "lantern", "magnet", "mirror", "paddle", "pillow",
    "pocket", "rocket", "saddle", "shovel", "sled", "tent", "ticket", "tunnel", "violin", "wagon",
)


def get_random_safe_words(count: int) -> list[str]:
    """Pick ``count`` distinct words using a CSPRNG."""
    return secrets.SystemRandom().sample(SAFE_WORDS, count)


def is_safe_word(word: str) -> bool:
    return word.lower() in SAFE_WORDS


__all__ = ["SAFE_WORDS", "get_random_safe_words", "is_safe_word"]
