# tests/test_prompt.py
from storybook.features.story_stream.prompt import (
    DEFAULT_STARTER_IDEA,
    build_illustration_prompt,
    build_photo_story_prompt,
    build_regenerate_prompt,
    build_story_system_prompt,
    build_story_user_prompt,
    build_title_prompts,
    character_prompt,
    length_guidance,
    scene_text,
)
from storybook.schemas import StoryRequest
from tests.conftest import story_payload


def _req(**overrides):
    return StoryRequest.model_validate(story_payload(**overrides))


def test_length_guidance_buckets():
    assert "short" in length_guidance(3)
    assert "medium" in length_guidance(6)
    assert "longer" in length_guidance(9)


def test_character_prompt_names_main_and_others():
    text = character_prompt(_req())
    assert "The main character is named Finn." in text
    assert "Mia (female)" in text
    assert "is male" in text


def test_character_prompt_single_character():
    req = _req(characters=[{"id": "c1", "name": "Ola", "isMain": True}])
    assert character_prompt(req) == "The story should be about a character named Ola."


def test_system_prompt_asks_for_exact_page_count():
    req = _req(storyLengthTargetPages=5)
    prompt = build_story_system_prompt(req)
    assert "exactly 5 strings" in prompt
    assert "4-6 year old" in prompt
    assert "watercolor style" in prompt


def test_starter_user_prompt_falls_back_to_default_idea():
    req = _req(storyPlotOption="starter", storyDescription=None)
    assert DEFAULT_STARTER_IDEA in build_story_user_prompt(req)
    assert "a fox learns to share" in build_story_user_prompt(_req())


def test_photo_prompt_mentions_photos_and_structure():
    req = _req(storyPlotOption="photos", uploadedStoryPhotoUrls=["https://cdn.example.com/1.jpg"])
    prompt = build_photo_story_prompt(req)
    assert "sequence of photos" in prompt
    assert "exactly 3 paragraphs total" in prompt
    assert "Additional idea from the parent: a fox learns to share" in prompt


def test_scene_text_lowercases_shouting():
    assert scene_text("  Finn yelled STOP and WOW! A big day.  ") == "Finn yelled stop and wow! A big day."


def test_illustration_prompt_scene_hints():
    req = _req()
    first = build_illustration_prompt(page_text="Once.", req=req, page_index=0, total_pages=3)
    middle = build_illustration_prompt(page_text="Then.", req=req, page_index=1, total_pages=3)
    last = build_illustration_prompt(page_text="End.", req=req, page_index=2, total_pages=3, has_references=True)
    assert "establishing scene" in first
    assert "establishing scene" not in middle and "resolution scene" not in middle
    assert "resolution scene" in last
    assert "reference photos" in last and "reference photos" not in first
    assert "a boy named Finn" in first
    assert "ZERO TEXT POLICY" in middle


def test_regenerate_prompt_appends_comment():
    assert "Special instructions" not in build_regenerate_prompt("A tree.")
    assert build_regenerate_prompt("A tree.", "  more blue ").endswith("Special instructions: more blue")


def test_title_prompts_use_first_three_pages():
    system, user = build_title_prompts(["a", "b", "c", "d"], "4-6", "Finn")
    assert "Finn" in system
    assert "a\n\nb\n\nc" in user
    assert "d" not in user.split("Story Text:")[1].split("Generate")[0]
