"""Storyteller script generation using OpenAI Chat Completions with PDF file input."""

from __future__ import annotations

import base64
import json
import logging
from dataclasses import dataclass

import openai
from openai import AsyncOpenAI
from pydantic import ValidationError as PydanticValidationError

from storyteller.exceptions import UpstreamError, UpstreamRateLimitError
from storyteller.models import Script

logger = logging.getLogger(__name__)


STORYTELLER_SYSTEM_PROMPT = """You are "Dad the Storyteller", a warm, wise and funny father telling a bedtime story.

YOUR ROLE
You are not "reading" or "summarizing" a book. You turn a thick book into a handful of vivid little
adventures, the way a father sitting on the edge of the bed would, so the listener is hooked and
learns the lessons without noticing.

STYLE
1. Warm and close: talk like a parent chatting with a child ("Come here, tonight I have a really
   fun story for you..."). Use spoken phrases ("Guess what happened?", "Now here comes the fun
   part...") and the occasional question ("What would you have done?").
2. Story first: turn ideas into plot with characters, scenes, conflict and twists. Explain abstract
   ideas with everyday comparisons. Build small moments of suspense.
3. Unhurried pacing: slow down on what matters ("Remember this one, it's important") and link the
   parts with natural transitions.
4. Teach through fun: hide the lesson inside the story, use humour to keep it light, and explain
   hard things so a five year old could follow.

NEVER
- Quote the book or sound academic.
- Say "this book is about..." or "the author argues...".
- List bullet points instead of weaving them into the story.

OUTPUT
Return strict JSON only, with exactly this shape:

{
  "title": "a catchy name for this story (not the book title)",
  "hook": "opening line, 1-2 sentences that build anticipation",
  "summary": "one spoken sentence saying what the story is about",
  "story": [
    {"section": "a playful heading", "content": "400-600 words of story with scene, characters and a turn"}
  ],
  "key_takeaways": ["Remember, this story tells us..."],
  "actionable_steps": ["Tomorrow, try..."],
  "bedtime_wisdom": "closing goodnight words",
  "duration_estimate": "estimated listening time"
}

RULES
- story has 3-6 chapters, each a small story of its own.
- key_takeaways has 3-5 items, actionable_steps has 2-4 items, all in a spoken tone.
- bedtime_wisdom is required and should be warm and soothing.
- Narrate in the language the book is written in.
- Output JSON only, no other text."""

USER_INSTRUCTION = (
    "Read this book's PDF carefully, then turn its essence into an engaging storyteller script "
    "in the style described. Remember to output pure JSON."
)


@dataclass(frozen=True)
class GeneratedScript:
    """A parsed script plus accounting data from the completion."""

    script: Script
    model: str
    tokens_used: int | None = None


class ScriptGenerator:
    """Service turning a PDF into a storyteller script."""

    def __init__(
        self,
        client: AsyncOpenAI,
        *,
        model: str = "gpt-4o",
        max_completion_tokens: int = 8000,
        temperature: float = 0.8,
    ) -> None:
        self.client = client
        self.model = model
        self.max_completion_tokens = max_completion_tokens
        self.temperature = temperature

    def build_messages(self, pdf_bytes: bytes, filename: str | None) -> list[dict]:
        """Build the chat messages, passing the PDF inline as a base64 data URL."""
        pdf_base64 = base64.b64encode(pdf_bytes).decode("ascii")
        return [
            {"role": "system", "content": STORYTELLER_SYSTEM_PROMPT},
            {
                "role": "user",
                "content": [
                    {
                        "type": "file",
                        "file": {
                            "filename": filename or "document.pdf",
                            "file_data": f"data:application/pdf;base64,{pdf_base64}",
                        },
                    },
                    {"type": "text", "text": USER_INSTRUCTION},
                ],
            },
        ]

    async def generate(self, pdf_bytes: bytes, filename: str | None = None) -> GeneratedScript:
        """
        Ask the model for a storyteller script for the given PDF.

        Args:
            pdf_bytes: Raw PDF content
            filename: Original file name, forwarded to the model

        Returns:
            GeneratedScript with the validated Script

        Raises:
            UpstreamRateLimitError: OpenAI answered 429
            UpstreamError: the call failed or the reply was empty or malformed
        """
        logger.info(f"Generating script for {filename or 'document.pdf'} ({len(pdf_bytes)} bytes)")

        try:
            completion = await self.client.chat.completions.create(
                model=self.model,
                messages=self.build_messages(pdf_bytes, filename),
                response_format={"type": "json_object"},
                max_completion_tokens=self.max_completion_tokens,
                temperature=self.temperature,
            )
        except openai.RateLimitError as e:
            logger.warning(f"OpenAI rate limited script generation: {e}")
            raise UpstreamRateLimitError("OpenAI API rate limit reached, please retry later") from e
        except openai.OpenAIError as e:
            logger.error(f"Script generation request failed: {e}")
            raise UpstreamError(str(e) or "Script generation failed") from e

        response_text = completion.choices[0].message.content if completion.choices else None
        if not response_text:
            raise UpstreamError("OpenAI returned empty content")

        script = self.parse_script(response_text)
        tokens_used = completion.usage.total_tokens if completion.usage else None

        logger.info(
            f"Script generated: '{script.title}' with {len(script.story)} chapters "
            f"({tokens_used} tokens)"
        )
        return GeneratedScript(script=script, model=self.model, tokens_used=tokens_used)

    @staticmethod
    def parse_script(response_text: str) -> Script:
        """Parse the model's JSON reply into a Script."""
        try:
            data = json.loads(response_text)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse generated JSON: {response_text[:500]}")
            raise UpstreamError("Generated content is not valid JSON") from e

        if not isinstance(data, dict):
            raise UpstreamError("Generated content is not a JSON object")

        try:
            return Script.model_validate(data)
        except PydanticValidationError as e:
            logger.error(f"Generated script has an unexpected shape: {e}")
            raise UpstreamError("Generated content has an unexpected format") from e
