"""Fixed curriculum, shop catalogue and demo seed records."""

from __future__ import annotations

from typing import Dict, List

from .schemas import ClassGroup, LearningModule, ModuleTheme, ShopItem, Student, TeacherAssessment


def _module(id: str, title: str, level: str, theme: ModuleTheme, description: str, rule: str) -> LearningModule:
    return LearningModule(
        id=id,
        title=title,
        level=level,
        theme=theme,
        description=description,
        rule_explanation=rule,
    )


MODULES: List[LearningModule] = [
    # NZC Level 1 (Years 0-2): the code
    _module("l1_satpin", "Initial Sounds (SATPIN)", "Level 1 (Year 0-1)", ModuleTheme.FOREST,
            "Start with S, A, T, P, I, N.",
            'These letters make distinct sounds. "A" says /a/ (apple), "S" says /s/ (snake).'),
    _module("l1_short_vowels", "Short Vowels (A E I O U)", "Level 1 (Year 1)", ModuleTheme.FOREST,
            "Hearing the difference between cat, cot, cut, kit, ket.",
            "Short vowels are quick sounds. A (apple), E (egg), I (igloo), O (octopus), U (umbrella)."),
    _module("l1_cvc", "CVC Foundations", "Level 1 (Year 1)", ModuleTheme.FOREST,
            "Building simple words like Cat, Dog, Bus.",
            "Consonant-Vowel-Consonant words usually have a short vowel sound."),
    _module("l1_digraphs", "Digraph Discovery", "Level 1 (Year 1-2)", ModuleTheme.OCEAN,
            "Two letters, one sound: sh, ch, th, ng.",
            "When H makes friends with S, C, or T, they make a new sound together."),
    _module("l1_blends", "Blends Beach", "Level 1 (Year 2)", ModuleTheme.OCEAN,
            "Beginning and ending blends (st, bl, tr, nd).",
            "In a blend, you can hear both sounds gliding together quickly."),
    _module("l1_floss", "The Floss Rule", "Level 1 (Year 2)", ModuleTheme.OCEAN,
            "Double letters at the end (ff, ll, ss, zz).",
            "If a short vowel word ends in f, l, s, or z, double it! (Hill, Mess, Buzz)."),
    _module("l1_ck_rule", 'The "ck" Rule', "Level 1 (Year 2)", ModuleTheme.OCEAN,
            'When to use "ck" vs "k" at the end of a word.',
            'Use "ck" right after a short vowel (Duck). Use "k" after a consonant or long vowel (Milk, Cake).'),

    # NZC Level 2 (Years 3-4): patterns and syllables
    _module("l2_magic_e", "Magic E Oasis", "Level 2 (Year 3)", ModuleTheme.DESERT,
            "Silent E makes the vowel say its name.",
            'An "e" at the end jumps over one consonant to make the vowel long. (Hop -> Hope).'),
    _module("l2_syllables_open", "Open & Closed Syllables", "Level 2 (Year 3)", ModuleTheme.DESERT,
            "Breaking words into chunks.",
            "Closed syllable ends in a consonant (short vowel: Cat). Open syllable ends in a vowel (long vowel: Go, Hi)."),
    _module("l2_vowel_teams", "Vowel Team Valley", "Level 2 (Year 3-4)", ModuleTheme.FOREST,
            "Common teams: ai, ay, ee, ea, oa.",
            "When two vowels go walking, the first one does the talking (Rain, Boat)."),
    _module("l2_bossy_r", "Bossy R Canyon", "Level 2 (Year 3-4)", ModuleTheme.DESERT,
            "ar, or, er, ir, ur patterns.",
            "The letter R changes the vowel sound. Car, Fork, Bird, Turn."),
    _module("l2_soft_c_g", "Soft C and G", "Level 2 (Year 4)", ModuleTheme.DESERT,
            "When C sounds like S, and G sounds like J.",
            "C and G go soft when followed by E, I, or Y (City, Gem, Gym)."),
    _module("l2_y_ending", "The Many Sounds of Y", "Level 2 (Year 4)", ModuleTheme.DESERT,
            "Y as a vowel at the end of words.",
            'In short words, Y says "I" (Sky). In long words, Y says "E" (Happy).'),

    # NZC Level 3 (Years 5-6): morphology
    _module("l3_plurals", "Plural Peaks", "Level 3 (Year 5)", ModuleTheme.VOLCANO,
            "Adding -s, -es, and changing y to i.",
            "Add -es for sh/ch/s/x/z. Change Y to I and add ES if consonant before Y (Baby -> Babies)."),
    _module("l3_apostrophes", "Possession Station", "Level 3 (Year 5)", ModuleTheme.VOLCANO,
            "Using apostrophes for ownership.",
            "Use 's for one owner (The dog's bone). Use s' for many owners (The dogs' bones)."),
    _module("l3_doubling", "The Doubling Rule", "Level 3 (Year 5-6)", ModuleTheme.VOLCANO,
            "Adding suffixes like -ing and -ed.",
            "Double the final consonant if the word has 1 syllable, 1 short vowel, and 1 ending consonant "
            "(Run -> Running). Do not double if it has two consonants (Jump -> Jumping)."),
    _module("l3_prefixes", "Prefix Power", "Level 3 (Year 6)", ModuleTheme.VOLCANO,
            "Changing meaning with un-, re-, dis-, pre-.",
            "Prefixes attach to the front. Re- means again. Un- means not."),
    _module("l3_schwa", "The Schwa Sound", "Level 3 (Year 6)", ModuleTheme.VOLCANO,
            'The unstressed "uh" sound in longer words.',
            'Any vowel can say "uh" in an unstressed syllable (About, Pencil, Doctor).'),
    _module("l3_homophones", "Tricky Homophones", "Level 3 (Year 6)", ModuleTheme.VOLCANO,
            "There, Their, They're and friends.",
            "There (place), Their (owner), They're (they are). To (direction), Too (also), Two (2)."),

    # NZC Level 4 (Years 7-8): etymology and complexity
    _module("l4_roots", "Greek & Latin Roots", "Level 4 (Year 7)", ModuleTheme.SPACE,
            "Building blocks: Tele, Scope, Port, Struct.",
            "English words are like lego. Tele (far) + Scope (see) = Telescope."),
    _module("l4_silent_letters", "Silent Letter Space", "Level 4 (Year 7)", ModuleTheme.SPACE,
            "Ghost letters: kn, gn, wr, mb.",
            "Silent letters are history traces. Knight (Old English), Psychology (Greek)."),
    _module("l4_complex_endings", "Complex Endings", "Level 4 (Year 8)", ModuleTheme.SPACE,
            "-tion, -sion, -cian, -ture.",
            "-tion is common. -sion often follows S or D (Expand -> Expansion). -cian is for people (Musician)."),
    _module("l4_adv_suffixes", "Advanced Suffixes", "Level 4 (Year 8)", ModuleTheme.SPACE,
            "-ance vs -ence, -able vs -ible.",
            "Hard rules! Often -able if you can hear the base word (Comfort -> Comfortable)."),

    # NZC Level 5 (Years 9-10): academic and exam prep
    _module("l5_acad_verbs", "Academic Verbs", "Level 5 (Year 9)", ModuleTheme.SPACE,
            "Essay words: Analyse, Evaluate, Synthesise.",
            "Academic spelling is precise. Analyse (NZ/UK) vs Analyze (US)."),
    _module("l5_hyphens", "Hyphenation Station", "Level 5 (Year 9)", ModuleTheme.SPACE,
            "Compound adjectives and prefixes.",
            "Hyphenate compound adjectives before a noun (A well-known author) but not after (The author is well known)."),
    _module("l5_sci_terms", "Scientific Vocabulary", "Level 5 (Year 10)", ModuleTheme.SPACE,
            "Photosynthesis, Chromatography, Hypothesis.",
            "Science words use Greek/Latin logic. Photo (light) + Synthesis (put together)."),
    _module("l5_foreign", "Loan Words", "Level 5 (Year 10)", ModuleTheme.SPACE,
            "French and Maori loan words.",
            "Loan words keep original spelling. Ch -> /sh/ in Chef (French). Wh -> /f/ in Whānau (Maori)."),
    _module("l5_lit_terms", "Literary Analysis", "Level 5 (Year 10)", ModuleTheme.SPACE,
            "Metaphor, Simile, Onomatopoeia, Soliloquy.",
            "Many literary terms come from Greek. Onomatopoeia is spelling sounds."),

    # NCEA Level 1 (Year 11)
    _module("l6_unfamiliar_text", "Unfamiliar Text Analysis", "NCEA Level 1 (Year 11)", ModuleTheme.SPACE,
            "Identifying tone, purpose, and audience.",
            "Writers use specific choices to target an audience. Tones can be objective, subjective, critical, or nostalgic."),
    _module("l6_language_features", "Advanced Language Features", "NCEA Level 1 (Year 11)", ModuleTheme.SPACE,
            "Hyperbole, Litotes, Euphemism, Paradox.",
            "Advanced features add nuance. Litotes is understatement (Not bad). Paradox is a contradictory truth."),

    # NCEA Level 2 (Year 12)
    _module("l7_critical_analysis", "Critical Analysis", "NCEA Level 2 (Year 12)", ModuleTheme.SPACE,
            "Evaluating bias, reliability, and subtext.",
            "Critical analysis looks beneath the surface. Bias is an inclination for or against a group or idea."),
    _module("l7_academic_vocab", "Academic Vocabulary L2", "NCEA Level 2 (Year 12)", ModuleTheme.SPACE,
            "Words for precise academic expression.",
            'Use precise verbs. Instead of "says", use "asserts", "implies", or "demonstrates".'),

    # NCEA Level 3 (Year 13)
    _module("l8_argumentation", "Complex Argumentation", "NCEA Level 3 (Year 13)", ModuleTheme.SPACE,
            "Constructing nuanced arguments and counter-arguments.",
            'A strong argument acknowledges complexity. Use "However", "Conversely", "While it is true that..." to weave ideas.'),
    _module("l8_scholarly_conventions", "Scholarly Writing", "NCEA Level 3 (Year 13)", ModuleTheme.SPACE,
            "Citations, referencing, and objective voice.",
            "Scholarly writing requires evidence. Integrate quotes seamlessly and reference sources accurately."),
]

MODULES_BY_ID: Dict[str, LearningModule] = {m.id: m for m in MODULES}


SHOP_ITEMS: List[ShopItem] = [
    ShopItem(id="hat_top", name="Top Hat", type="HAT", icon="\U0001F3A9", cost=20),
    ShopItem(id="hat_cap", name="Cool Cap", type="HAT", icon="\U0001F9E2", cost=15),
    ShopItem(id="hat_crown", name="Royal Crown", type="HAT", icon="\U0001F451", cost=50),
    ShopItem(id="hat_wizard", name="Wizard Hat", type="HAT", icon="\U0001F9D9", cost=40),
    ShopItem(id="glass_sunglasses", name="Sunnies", type="GLASSES", icon="\U0001F60E", cost=15),
    ShopItem(id="glass_nerd", name="Smart Specs", type="GLASSES", icon="\U0001F453", cost=10),
    ShopItem(id="acc_bow", name="Bow Tie", type="ACCESSORY", icon="\U0001F380", cost=10),
    ShopItem(id="acc_scarf", name="Scarf", type="ACCESSORY", icon="\U0001F9E3", cost=12),
    ShopItem(id="acc_medal", name="Medal", type="ACCESSORY", icon="\U0001F947", cost=30),
    ShopItem(id="bg_forest", name="Forest", type="BACKGROUND", icon="\U0001F332", cost=25),
    ShopItem(id="bg_beach", name="Beach", type="BACKGROUND", icon="\U0001F3D6", cost=25),
    ShopItem(id="bg_space", name="Space", type="BACKGROUND", icon="\U0001F30C", cost=40),
]

SHOP_ITEMS_BY_ID: Dict[str, ShopItem] = {item.id: item for item in SHOP_ITEMS}


# Focus areas a teacher can tag on an assessment
FOCUS_OPTIONS: List[str] = [
    "Phonics", "Vowels", "Endings", "Roots", "Prefixes", "Suffixes", "Blends", "Silent Letters",
]

LOGIN_CODE_PREFIXES: List[str] = ["KIWI", "KEA", "TUI", "FERN", "HAKA", "MOA"]


SEED_TEACHER_ID = "t1"
SEED_TEACHER_NAME = "Mr. D"

_JUNIOR_ASSIGNMENTS = ["l2_magic_e", "l2_syllables_open", "l2_vowel_teams", "l2_bossy_r", "l2_soft_c_g", "l2_y_ending"]


def seed_classes() -> List[ClassGroup]:
    return [
        ClassGroup(id="c1", teacher_id=SEED_TEACHER_ID, name="Room 1", student_ids=["s1", "s2"], avatar="\U0001F680"),
        ClassGroup(id="c2", teacher_id=SEED_TEACHER_ID, name="Senior English", student_ids=["s3", "s4"], avatar="\U0001F393"),
    ]


def seed_students() -> List[Student]:
    return [
        Student(id="s1", login_code="MOA-176", name="Nethalee", avatar="\U0001F478", year_level=4,
                assigned_module_ids=list(_JUNIOR_ASSIGNMENTS)),
        Student(id="s2", login_code="HAKA-283", name="Yuven", avatar="✈️", year_level=4,
                assigned_module_ids=list(_JUNIOR_ASSIGNMENTS)),
        Student(id="s3", login_code="UDARI-13", name="Udari", avatar="\U0001F469‍\U0001F393", year_level=13,
                assigned_module_ids=["l8_argumentation", "l8_scholarly_conventions"],
                teacher_assessment=TeacherAssessment(reading_level=13, focus_areas=["Critical Analysis", "Complex Argumentation"])),
        Student(id="s4", login_code="VONAL-10", name="Vonal", avatar="\U0001F575️", year_level=10,
                assigned_module_ids=["l5_sci_terms", "l5_foreign", "l5_lit_terms"],
                teacher_assessment=TeacherAssessment(reading_level=10, focus_areas=["Scientific Vocabulary"])),
    ]
