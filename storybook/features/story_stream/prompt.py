# storybook/features/story_stream/prompt.py
import re
from typing import List, Optional, Tuple

from storybook.schemas import Character, Gender, StoryRequest

_ALL_CAPS_RE = re.compile(r"\b[A-Z]{2,}\b")

DEFAULT_STARTER_IDEA = "a fun, heartwarming adventure with a surprise at the end"


# -------------------------------------------------------------------
# Shared character phrasing
# -------------------------------------------------------------------

def length_guidance(pages: int) -> str:
    text = f"a story of about {pages} paragraphs"
    if pages <= 4:
        return text + " (a short story)"
    if pages >= 8:
        return text + " (a longer story)"
    return text + " (a medium-length story)"


def _main_name(req: StoryRequest) -> str:
    return req.main_character.name.strip() or "the main character"


def character_prompt(req: StoryRequest) -> str:
    main = req.main_character
    name = _main_name(req)
    gender_line = f" The main character {name} is {main.gender.value}." if main.gender != Gender.unspecified else ""
    others = [
        f"{c.name} ({c.gender.value})" if c.gender != Gender.unspecified else c.name
        for c in req.other_characters
    ]
    if others:
        return f"The main character is named {name}.{gender_line} Other characters in the story are: {', '.join(others)}."
    return f"The story should be about a character named {name}.{gender_line}"


def _style_line(style: Optional[str]) -> str:
    return f"The story should have a {style} style and tone.\n" if style else ""


# -------------------------------------------------------------------
# Text stage
# -------------------------------------------------------------------

def build_story_system_prompt(req: StoryRequest) -> str:
    n = req.story_length_target_pages
    return (
        f"You are a creative children's story writer. Create {length_guidance(n)} for a {req.age_range} year old child.\n"
        f"{character_prompt(req)}\n"
        f"{_style_line(req.story_style)}"
        "The story should be engaging, age-appropriate, and have a clear beginning, middle, and end, "
        "prioritizing a complete narrative over hitting an exact paragraph count.\n"
        f"Return ONLY a JSON object with a \"storyPages\" array containing exactly {n} strings, "
        "each representing one paragraph of the story.\n"
        "Do not include any explanations, notes, or other text outside the JSON structure."
    )


def build_story_user_prompt(req: StoryRequest) -> str:
    idea = (req.story_description or "").strip() or DEFAULT_STARTER_IDEA
    return f"Write a children's story based on this idea: {idea}"


def build_photo_story_prompt(req: StoryRequest) -> str:
    n = req.story_length_target_pages
    extra = (req.story_description or "").strip()
    return f"""
You are a creative children's story writer. Create {length_guidance(n)} for a {req.age_range} year old child.
{character_prompt(req)}
{_style_line(req.story_style)}
I've provided a sequence of photos. Create a story that incorporates these images in order, as if they represent scenes or moments in the story's progression.
{f"Additional idea from the parent: {extra}" if extra else ""}

The story should be engaging, age-appropriate, and have a clear beginning, middle, and end, prioritizing a complete narrative over hitting an exact paragraph count.

IMPORTANT: You MUST return ONLY a valid JSON object with this exact structure:
{{
  "storyPages": [
    "paragraph 1",
    "paragraph 2",
    ... (exactly {n} paragraphs total)
  ]
}}

Each paragraph should be a string with approximately 3-4 sentences.
Do not include any explanations, notes, or other text outside the JSON structure.""".strip()


# -------------------------------------------------------------------
# Illustration stage
# -------------------------------------------------------------------

def scene_text(page_text: str) -> str:
    """Lowercase shouted words so the image model is less tempted to letter them."""
    return _ALL_CAPS_RE.sub(lambda m: m.group(0).lower(), page_text.strip())


def _gendered(c: Character, *, fallback_child: bool) -> str:
    if c.gender == Gender.female:
        return f"a girl named {c.name}"
    if c.gender == Gender.male:
        return f"a boy named {c.name}"
    return f"a child named {c.name}" if fallback_child else c.name


def illustration_character_block(req: StoryRequest) -> str:
    main = req.main_character
    main_desc = _gendered(main.model_copy(update={"name": _main_name(req)}), fallback_child=True)
    others = [_gendered(c, fallback_child=False) for c in req.other_characters]
    lines = [f"The main character is {main_desc}."]
    if others:
        lines[0] += f" Other characters that may appear: {', '.join(others)}."
    if main.gender == Gender.female:
        lines.append("Ensure the main character clearly appears as a girl/female in the illustration.")
    elif main.gender == Gender.male:
        lines.append("Ensure the main character clearly appears as a boy/male in the illustration.")
    return "\n".join(lines)


NO_TEXT_RULES = """MANDATORY RULES - NO EXCEPTIONS:
1. ZERO TEXT POLICY: The image must be completely free of any text, letters, numbers, or symbols
2. NO TEXT ON OBJECTS: Books, papers, signs, clothing, or any other objects must be completely blank
3. NO TEXT IN BACKGROUND: No text in any part of the background or environment
4. NO TEXT IN FOREGROUND: No text in any part of the foreground or main elements
5. NO TEXT IN DECORATIONS: No text in any decorative elements or patterns
6. NO TEXT IN ANY FORM: No text in any language, style, or format

OBJECT HANDLING - TEXT-FREE REQUIREMENTS:
- Books and papers: Show only blank pages or abstract patterns
- Signs and displays: Use only blank surfaces or abstract shapes
- Clothing and accessories: Use solid colors or patterns, never lettering
- Buildings and structures: No writing on walls, windows, or surfaces

FINAL VERIFICATION:
This image MUST be completely free of any text, letters, numbers, writing, or readable elements. The illustration should tell the story through pure visuals only. If there is ANY doubt about an element containing text, remove it or replace it with a text-free alternative."""


def build_illustration_prompt(
    *,
    page_text: str,
    req: StoryRequest,
    page_index: int,
    total_pages: int,
    has_references: bool = False,
) -> str:
    style = f"Primary style: {req.story_style}" if req.story_style else "Primary style: balanced and appealing for children"
    scene_hint = ""
    if page_index == 0:
        scene_hint = "Create an establishing scene that introduces the character and setting\n"
    elif page_index == total_pages - 1:
        scene_hint = "Create a satisfying resolution scene with positive emotional tone\n"
    refs = (
        "The attached reference photos show the characters; keep their likeness, hair and skin tone, "
        "rendered in the illustration style.\n"
        if has_references else ""
    )
    return (
        "CRITICAL INSTRUCTION - STRICT NO TEXT POLICY\n"
        "This is a children's book illustration. TEXT IS COMPLETELY FORBIDDEN IN ANY FORM.\n\n"
        "CREATE A CHILDREN'S BOOK ILLUSTRATION showing this scene:\n"
        f"{scene_text(page_text)}\n\n"
        "CHARACTER DETAILS:\n"
        f"{illustration_character_block(req)}\n"
        f"{refs}\n"
        "STYLE GUIDANCE:\n"
        f"{style}\n"
        f"Age-appropriate visuals for {req.age_range or '5-7'} year old audience\n"
        "Professional children's book quality, colorful with clear focal points\n"
        f"{scene_hint}\n"
        f"{NO_TEXT_RULES}"
    )


def build_regenerate_prompt(page_text: str, comment: Optional[str] = None) -> str:
    prompt = (
        f"Create a children's book illustration showing: {scene_text(page_text)}\n"
        "Style: Colorful, whimsical, high-quality children's book illustration, digital art, appealing to children.\n\n"
        f"{NO_TEXT_RULES}"
    )
    if comment and comment.strip():
        prompt += f"\n\nSpecial instructions: {comment.strip()}"
    return prompt


# -------------------------------------------------------------------
# Title
# -------------------------------------------------------------------

def build_title_prompts(pages: List[str], age_range: str, main_name: str) -> Tuple[str, str]:
    system = (
        "You are an expert at creating engaging and age-appropriate titles for children's stories.\n"
        f"Given the following story text, generate a short, creative, and catchy title suitable for a child in the {age_range} age range.\n"
        f"The main character is named {main_name}.\n"
        "The title should be memorable, reflect the story's theme, and appeal to children.\n"
        "Output ONLY the title text, nothing else. Do not use quotes around the title."
    )
    story = "\n\n".join(pages[:3])
    user = f"Story Text:\n{story}\n\nGenerate a title:"
    return system, user
