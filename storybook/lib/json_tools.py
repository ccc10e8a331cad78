# storybook/lib/json_tools.py
import json
import re

def extract_json_block(text: str) -> str:
    """
    Strip markdown fences and surrounding chatter from a model answer,
    returning the JSON object (or array) it contains.
    """
    s = text.strip()
    if s.startswith("```"):
        s = re.sub(r"^```(?:json)?\s*", "", s, flags=re.IGNORECASE)
        s = re.sub(r"\s*```$", "", s)
    try:
        json.loads(s)
        return s
    except ValueError:
        pass
    m = re.search(r"\{.*\}", s, flags=re.DOTALL)
    if m:
        return m.group(0)
    m = re.search(r"\[.*\]", s, flags=re.DOTALL)
    return m.group(0) if m else s

def strip_wrapping_quotes(text: str) -> str:
    s = text.strip()
    m = re.match(r"""^["'](.*)["']$""", s, flags=re.DOTALL)
    return m.group(1).strip() if m else s
