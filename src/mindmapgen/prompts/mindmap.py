from __future__ import annotations

import json

MIND_MAP_SYSTEM_PROMPT = (
    "You are an assistant that generates mind maps in JSON format. Only output the raw JSON."
)

MIND_MAP_EXAMPLE = {
    "root": {
        "text": "Main Topic",
        "children": [
            {"text": "Subtopic 1", "children": [{"text": "Detail 1"}]},
            {"text": "Subtopic 2"},
        ],
    }
}


def build_mind_map_prompt(subject: str, topic: str) -> str:
    """User prompt asking for a mind map of `topic` within `subject`."""

    structure = json.dumps(MIND_MAP_EXAMPLE, indent=2)
    return (
        f"You are a professional teacher in {subject}.\n"
        f"Your goal is to generate a mind map for the subject above with the focus on the {topic} "
        f"so that a student can improve their understanding of {subject} and {topic} while using "
        "that mind map.\n"
        f"The mind map should feature sub-topics of the {topic} and no other content.\n"
        "The result of your work must be a mind map in the form of JSON using the following data "
        f"structure:\n{structure}\n"
        "Respond ONLY with the JSON structure, without any introductory text or markdown formatting."
    )
