# constants.py
# Vocabulary tables and tunable thresholds for the order-intake engine.
# Thresholds can be overridden from the environment (.env).

import os
from dotenv import load_dotenv

load_dotenv()


# ── Units ─────────────────────────────────────────────────────────────────────

UNIT_CANONICAL = {
    "kg": "kg", "kgs": "kg", "kilo": "kg", "kilos": "kg",
    "kilogram": "kg", "kilograms": "kg", "kilogramme": "kg",
    "g": "g", "gm": "g", "gms": "g", "gram": "g", "grams": "g",
    "gramme": "g", "grm": "g",
    "l": "l", "ltr": "l", "ltrs": "l", "litre": "l", "litres": "l",
    "liter": "l", "liters": "l", "lit": "l",
    "ml": "ml", "millilitre": "ml", "millilitres": "ml",
    "milliliter": "ml", "milliliters": "ml",
    "pcs": "pcs", "pc": "pcs", "piece": "pcs", "pieces": "pcs",
    "nag": "pcs", "unit": "pcs", "units": "pcs",
    "packet": "packet", "packets": "packet", "pack": "packet",
    "packs": "packet", "pkt": "packet", "pkts": "packet", "paket": "packet",
    "box": "box", "boxes": "box", "peti": "box", "dabba": "box", "dibba": "box",
    "bottle": "bottle", "bottles": "bottle", "botal": "bottle",
}

KNOWN_UNITS = set(UNIT_CANONICAL.keys())

# Factor to the category's base unit (g, ml, pcs)
UNIT_FACTORS = {
    "kg": 1000.0, "g": 1.0,
    "l": 1000.0, "ml": 1.0,
    "pcs": 1.0, "packet": 1.0, "box": 1.0, "bottle": 1.0,
}

UNIT_CATEGORIES = {
    "kg": "weight", "g": "weight",
    "l": "volume", "ml": "volume",
    "pcs": "count", "packet": "count", "box": "count", "bottle": "count",
}

BASE_UNITS = {"weight": "g", "volume": "ml", "count": "pcs"}
MAJOR_UNITS = {"weight": "kg", "volume": "l"}


# ── Numbers and money ─────────────────────────────────────────────────────────

NUMBER_WORDS = {
    "one": "1", "two": "2", "three": "3", "four": "4", "five": "5",
    "six": "6", "seven": "7", "eight": "8", "nine": "9", "ten": "10",
    "twenty": "20", "fifty": "50", "hundred": "100",
    "half": "0.5", "quarter": "0.25",
    "ek": "1", "do": "2", "teen": "3", "char": "4", "chaar": "4",
    "paanch": "5", "panch": "5", "chhe": "6", "che": "6", "saat": "7",
    "aath": "8", "nau": "9", "das": "10", "bees": "20", "pachas": "50",
    "sau": "100", "aadha": "0.5", "adha": "0.5",
    "pav": "0.25", "paav": "0.25", "dedh": "1.5", "dhai": "2.5", "dhaai": "2.5",
}

CURRENCY_WORDS = {
    "rupees", "rupee", "rs", "inr", "bucks",
    "rupaye", "rupaiye", "rupay", "rupiya", "rupiye", "rupaiya", "rupye",
}

CURRENCY_SYMBOLS = {"₹"}

# Colloquial "worth of" markers: "20 ki namak"
POSSESSIVE_PARTICLES = {"ki", "ka", "ke"}


# ── Segmentation ──────────────────────────────────────────────────────────────

SEPARATOR_WORDS = {
    "and", "then", "also", "plus",
    "aur", "or", "phir", "fir", "bhi", "tatha", "uske", "baad",
}

SEPARATOR_PUNCTUATION = {",", ";", "&", "+", "."}

STOP_WORDS = {
    "the", "a", "an", "of", "and", "then", "also", "plus", "please",
    "add", "give", "me", "some", "worth", "for", "with", "to", "i",
    "want", "need", "is", "are", "or", "but", "in", "on", "at", "put",
    "get", "more", "my", "bill", "item", "items", "ok", "okay",
    "aur", "phir", "fir", "bhi", "ka", "ki", "ke", "wala", "wali", "wale",
    "do", "de", "dena", "dijiye", "dedo", "chahiye", "mujhe", "hai",
    "hain", "haan", "ji", "bhaiya", "bhai", "yeh", "ye", "woh", "wo",
    "thoda", "jara", "zara", "tatha", "uske", "baad", "karo",
    "kar", "lo", "le", "lena", "ek", "aadha",
}

# Filler words skipped when matching single words against the catalog
NGRAM_SKIP_WORDS = {
    "the", "a", "an", "is", "are", "and", "or", "but", "in", "on", "at",
    "to", "for", "of", "with", "aur", "ka", "ki", "ke",
}


# ── Resolver vocabulary ───────────────────────────────────────────────────────

# Colloquial / regional words → catalog-style names
VOCABULARY = {
    "chini": "sugar", "cheeni": "sugar", "shakkar": "sugar", "shakar": "sugar",
    "namak": "salt",
    "chawal": "rice", "chaawal": "rice", "chaval": "rice",
    "aata": "wheat flour", "atta": "wheat flour", "gehun": "wheat",
    "maida": "refined flour", "besan": "gram flour",
    "sooji": "semolina", "suji": "semolina", "rava": "semolina",
    "tel": "oil", "sarson tel": "mustard oil", "sarso ka tel": "mustard oil",
    "doodh": "milk", "dudh": "milk", "dahi": "curd", "makhan": "butter",
    "paneer": "paneer", "ghee": "ghee",
    "anda": "eggs", "ande": "eggs", "egg": "eggs",
    "aloo": "potato", "alu": "potato", "pyaz": "onion", "pyaaz": "onion",
    "kanda": "onion", "tamatar": "tomato", "adrak": "ginger",
    "lahsun": "garlic", "lehsun": "garlic", "haldi": "turmeric",
    "mirch": "chilli", "lal mirch": "red chilli", "jeera": "cumin",
    "dhaniya": "coriander", "chai": "tea", "chai patti": "tea",
    "chana": "chickpeas", "rajma": "kidney beans", "daal": "dal",
    "sabun": "soap", "biskut": "biscuits", "biscuit": "biscuits",
    "pani": "water", "bread": "bread", "double roti": "bread",
}

# Known speech-recognition mis-transcriptions
PHONETIC_CORRECTIONS = {
    "shugar": "sugar", "suger": "sugar", "shuger": "sugar", "sugaar": "sugar",
    "sault": "salt", "solt": "salt", "nimak": "namak",
    "chinni": "chini", "cheeny": "chini", "chinee": "chini",
    "rise": "rice", "rais": "rice", "chaval": "chawal",
    "oyal": "oil", "oel": "oil", "dood": "doodh", "dudh": "doodh",
    "milkh": "milk", "aata": "atta", "ata": "atta",
    "tomatoe": "tomato", "tamater": "tamatar", "potatoe": "potato",
    "onian": "onion", "unian": "onion", "pyas": "pyaz",
    "dhal": "dal", "dall": "dal", "tea leaf": "tea",
}


# ── Tunable thresholds ────────────────────────────────────────────────────────

# Amount entity dropped when this close to a quantity-unit mention
OVERLAP_TOLERANCE_CHARS = int(os.getenv("OVERLAP_TOLERANCE_CHARS", "10"))

# Minimum fuzzy score accepted by the product resolver
FUZZY_MATCH_THRESHOLD = float(os.getenv("FUZZY_MATCH_THRESHOLD", "0.65"))

# Identical transcript re-submitted inside this window is ignored
DEDUP_WINDOW_SECONDS = float(os.getenv("DEDUP_WINDOW_SECONDS", "3"))

SILENCE_TIMEOUT_SECONDS             = float(os.getenv("SILENCE_TIMEOUT_SECONDS", "2.0"))
SILENCE_TIMEOUT_CONSTRAINED_SECONDS = float(os.getenv("SILENCE_TIMEOUT_CONSTRAINED_SECONDS", "3.5"))

BACKWARD_NAME_WORDS = 5
FORWARD_NAME_WORDS  = 3
MIN_NAME_CHARS      = 2

SALE_MODE_RETAIL    = "retail"
SALE_MODE_WHOLESALE = "wholesale"
DEFAULT_SALE_MODE   = os.getenv("SALE_MODE", SALE_MODE_RETAIL)

PRICE_MISSING = "PriceMissing"
