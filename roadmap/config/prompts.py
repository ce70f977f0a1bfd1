"""LLM prompt templates for roadmap segmentation."""

# Common instruction to suppress commentary and ensure JSON-only output
# Note: curly braces must be escaped as {{ }} for LangChain templates
JSON_ONLY_INSTRUCTION = """
CRITICAL: You MUST respond with ONLY a valid JSON object.
- Do NOT include any thinking, reasoning, or explanation.
- Do NOT use markdown code blocks.
- Start your response directly with the opening brace
- No text before or after the JSON."""

SEGMENTATION_SYSTEM_PROMPT = """You are an expert educational content analyst. Your task is to analyze an academic document and create a learning roadmap.

DIFFICULTY LEVELS:
- beginner: Orientation material, definitions, context a newcomer needs first
- intermediate: The main body of knowledge, assumes the beginner material
- advanced: Deeper, more complex or applied material

RULES:
1. Identify 4-8 logical learning topics/sections
2. Topics must be sequential, non-overlapping and build upon each other
3. Topics must be listed in reading/learning order
4. Use only the three difficulty levels above, spelled exactly as shown
5. Make descriptions motivating and clear
6. Estimate realistic reading time for students as a range (e.g., "5-10 minutes")
""" + JSON_ONLY_INSTRUCTION

SEGMENTATION_USER_PROMPT = """Analyze this document and build its learning roadmap.

DOCUMENT NAME: "{document_label}"

DOCUMENT CONTENT:
---
{document_text}
---

For each topic, provide:
- A clear, descriptive title
- A description of what learners will understand
- 2-4 key learning points
- A difficulty level (beginner/intermediate/advanced)
- An estimated reading time
- Learning objectives

Respond with ONLY this JSON structure (no other text):
{{
  "title": "Main document/course title",
  "overview": "2-3 sentence overview of what the learner will achieve",
  "segments": [
    {{
      "id": 1,
      "title": "Topic title",
      "description": "What the learner will understand after this segment",
      "keyPoints": ["Key point 1", "Key point 2", "Key point 3"],
      "difficulty": "beginner",
      "estimatedTime": "5-10 minutes",
      "learningObjectives": ["By the end...", "You will understand..."]
    }}
  ],
  "totalSegments": 4,
  "estimatedTotalTime": "45-60 minutes"
}}"""

TRUNCATION_MARKER = "\n... (content truncated for token limit)"
