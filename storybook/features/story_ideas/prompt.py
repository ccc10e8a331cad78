# storybook/features/story_ideas/prompt.py
from storybook.schemas import Gender

from .schemas import StoryIdeaRequest


def idea_character_line(req: StoryIdeaRequest) -> str:
    if req.characters:
        main, others = req.characters[0], req.characters[1:]
        line = f"The main character is {main.name}."
        if main.gender != Gender.unspecified:
            line += f" The main character is {main.gender.value}."
        if others:
            names = [c.name if c.gender == Gender.unspecified else f"{c.name} ({c.gender.value})" for c in others]
            line += f" Other characters include: {', '.join(names)}."
        return line
    if req.character_names:
        main, others = req.character_names[0], req.character_names[1:]
        line = f"The main character is {main}."
        if others:
            line += f" Other characters include: {', '.join(others)}."
        return line
    return ""


def build_story_idea_prompt(req: StoryIdeaRequest) -> str:
    characters = idea_character_line(req)
    return f"""
You are an expert at analyzing photos and creating story ideas for children's stories.
{characters}
I've provided {len(req.photo_urls)} photo(s). Based on these photos, suggest a brief, one-paragraph story idea for a {req.age_range} year old child.

Your response should be imaginative, child-appropriate, and directly tied to what you see in the images.
The response should be 2-3 sentences only, focused on the main premise of a potential story.
DO NOT explain your reasoning or say things like "Based on these images..."
Just give me the story idea directly.""".strip()
