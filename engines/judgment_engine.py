"""
QualityJudgmentAdapter - call-through to the vision oracle

Three questions are asked about a screenshot:
  - verify_open:     is a chat conversation window open?
  - score_welcome:   how good is the chatbot's welcome message?
  - locate_launcher: where is the button that opens the chat?
The oracle is slow and unreliable; every failure surfaces as OracleError and
the caller decides on the conservative default.
"""
import asyncio
import hashlib
import json
from typing import Dict, Iterable, Optional, Tuple

from openai import AsyncOpenAI
from rich.console import Console

from config import Config
from core.errors import OracleError
from core.logger import ScanLogger
from core.models import Candidate, WelcomeScore
from engines.response_parser import parse_coordinates, parse_score, parse_verdict
from utils.helpers import encode_image_to_base64, format_tried_points

console = Console()

SYSTEM_PROMPT = (
    "You are an expert at evaluating chatbot UX and messaging. "
    "You look at screenshots of web pages and answer precisely."
)

VERIFY_PROMPT = """Look at this screenshot of a web page. This may be a mobile view.

Is a chatbot or live-chat CONVERSATION WINDOW open and visible?
A small launcher bubble or icon on its own does NOT count as open.

Respond with JSON only:
{"open": true|false, "reason": "one short sentence"}"""

WELCOME_PROMPT = """First, determine if there is an open chatbot widget visible in this screenshot. This may be a mobile view. If no chatbot widget is visible, respond with ONLY 'No chatbot widget found for analysis.'

If a chatbot widget IS visible, analyze its welcome messages and provide a score from 1 to 100 based on how well they introduce the chatbot's main functionalities or offer a tutorial in the initial interactions. Keep the response concise and finish with a line 'Score: N/100'."""

LOCATE_PROMPT = """This is a screenshot of a web page, {width}x{height} pixels.

Find the button, bubble or tab that OPENS the chat / chatbot / messaging widget.
Chat launchers are usually small and sit near the bottom-right corner.
{tried}
Respond with JSON only:
{{"found": true, "x": <center x in pixels>, "y": <center y in pixels>}}
or {{"found": false}} if there is no chat launcher."""


class QualityJudgmentAdapter:

    def __init__(self,
                 logger: ScanLogger,
                 client: Optional[AsyncOpenAI] = None,
                 model: str = Config.MODEL,
                 timeout: float = Config.ORACLE_TIMEOUT_SECONDS):
        self.logger = logger
        self.model = model
        self.timeout = timeout
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        # Created on first use so fingerprint-only runs need no API key
        if self._client is None:
            self._client = AsyncOpenAI(api_key=Config.OPENAI_API_KEY, timeout=self.timeout)
        return self._client

    async def verify_open(self, image: bytes, cache: Optional[Dict[str, bool]] = None) -> bool:
        """
        Ask whether a chat window is open in the capture.

        cache holds earlier verdicts of the same session keyed by capture hash;
        the adapter itself keeps no state between calls.
        """
        image_hash = hashlib.md5(image).hexdigest()[:12] if image else ""
        if cache is not None and image_hash in cache:
            console.print("[yellow]   Using cached verification verdict[/yellow]")
            return cache[image_hash]

        answer = await self._ask(image, VERIFY_PROMPT, max_tokens=200)
        verdict = parse_verdict(answer)
        if cache is not None:
            cache[image_hash] = verdict
        self.logger.log_action("verify_open", {"verdict": verdict, "answer": answer[:300]})
        return verdict

    async def score_welcome(self, image: bytes) -> WelcomeScore:
        answer = await self._ask(image, WELCOME_PROMPT, max_tokens=1000)
        score = parse_score(answer)
        self.logger.log_action("score_welcome", {"score": score, "answer": answer[:300]})
        return WelcomeScore(text=answer.strip(), score=score)

    async def locate_launcher(self,
                              image: bytes,
                              viewport: Tuple[int, int],
                              tried: Iterable[Tuple[float, float]] = ()) -> Optional[Candidate]:
        tried_points = format_tried_points(tried)
        tried_text = ""
        if tried_points:
            tried_text = (
                "\nThese points were already clicked and did NOT open the chat, "
                f"suggest something else: {tried_points}\n"
            )
        prompt = LOCATE_PROMPT.format(width=viewport[0], height=viewport[1], tried=tried_text)
        answer = await self._ask(image, prompt, max_tokens=200)
        candidate = parse_coordinates(answer, viewport)
        self.logger.log_action("locate_launcher", {
            "found": candidate is not None,
            "answer": answer[:300],
        })
        return candidate

    async def _ask(self, image: bytes, prompt: str, max_tokens: int) -> str:
        if not image:
            raise OracleError("Cannot judge an empty capture")

        image_b64 = encode_image_to_base64(image)
        console.print(f"[cyan]   👁️  Asking {self.model}...[/cyan]")

        try:
            response = await asyncio.wait_for(
                self.client.chat.completions.create(
                    model=self.model,
                    temperature=0,
                    max_tokens=max_tokens,
                    messages=[
                        {"role": "system", "content": SYSTEM_PROMPT},
                        {
                            "role": "user",
                            "content": [
                                {"type": "text", "text": prompt},
                                {
                                    "type": "image_url",
                                    "image_url": {"url": f"data:image/jpeg;base64,{image_b64}"}
                                }
                            ]
                        }
                    ]
                ),
                timeout=self.timeout
            )
        except asyncio.TimeoutError as e:
            self.logger.log_error("oracle_timeout", f"No answer within {self.timeout}s")
            raise OracleError(f"Vision oracle did not answer within {self.timeout}s") from e
        except Exception as e:
            self.logger.log_error("oracle_failed", str(e))
            raise OracleError(f"Vision oracle call failed: {e}") from e

        try:
            text = response.choices[0].message.content
        except (AttributeError, IndexError) as e:
            raise OracleError(f"Unexpected oracle response: {json.dumps(str(response))[:200]}") from e

        if not text or not text.strip():
            raise OracleError("Vision oracle returned an empty answer")
        return text
