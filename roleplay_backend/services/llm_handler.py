import json
import logging
import re
from typing import Dict, Iterator, List, Optional

import requests

from roleplay_backend.config import Config
from roleplay_backend.services.errors import UpstreamGenerationError

logger = logging.getLogger(__name__)

METADATA_DELIMITER = "---METADATA---"
REPORT_DELIMITER = "---REPORT---"

DEFAULT_SUMMARY = "Previous conversation started."


class LLMHandler:
    """
    Thin client over the Ollama chat API.

    Every public call either returns model output or raises
    UpstreamGenerationError; nothing here invents a reply on failure.
    """

    def __init__(self, base_url=None, chat_model=None, feedback_model=None, timeout=None):
        base_url = (base_url or Config.OLLAMA_URL).rstrip("/")
        self.chat_url = f"{base_url}/api/chat"
        self.chat_model = chat_model or Config.CHAT_MODEL
        self.feedback_model = feedback_model or Config.FEEDBACK_MODEL
        self.timeout = timeout or Config.LLM_TIMEOUT

    # -------------------------------------------------------
    # PUBLIC: Character chat (batch + streaming)
    # -------------------------------------------------------
    def chat(self, history: List[Dict], persona: str, objective: str,
             summary: Optional[str] = None, user_name: str = "Traveler") -> str:
        """Returns the raw reply: display text, delimiter, metadata JSON."""
        messages = [self._roleplay_system_message(persona, objective, summary, user_name), *history]
        response = self._call_ollama(self.chat_model, messages, temperature=0.8, max_tokens=400)
        return self._safe_parse_response(response)

    def chat_stream(self, history: List[Dict], persona: str, objective: str,
                    summary: Optional[str] = None, user_name: str = "Traveler") -> Iterator[str]:
        """Yields raw reply text chunk by chunk, same format as chat()."""
        messages = [self._roleplay_system_message(persona, objective, summary, user_name), *history]
        response = self._call_ollama(self.chat_model, messages, temperature=0.8, max_tokens=400, stream=True)
        return self._iter_stream(response)

    # -------------------------------------------------------
    # PUBLIC: Summaries, feedback, hints, selection lookup
    # -------------------------------------------------------
    def summarize(self, history: List[Dict]) -> str:
        messages = [
            {
                "role": "system",
                "content": (
                    "Summarize this Mandarin conversation concisely. Focus on: "
                    "1. User progress toward goal. 2. Key vocab used. 3. Current emotional state. "
                    "Keep it under 100 words in English."
                ),
            },
            *history,
        ]
        response = self._call_ollama(self.chat_model, messages, temperature=0.3, max_tokens=200)
        return self._safe_parse_response(response).strip() or DEFAULT_SUMMARY

    def generate_feedback(self, history: List[Dict], scenario_title: str, objective: str) -> Dict:
        """
        Coach report as loosely-typed JSON:
        {score, feedback, corrections: [...], suggestedFlashcards: [...]}
        """
        system_prompt = f"""Mandarin Coach. Analyze: Scenario: "{scenario_title}", Goal: "{objective}"
JSON Output: {{
  "score": (0-100),
  "feedback": "2-3 sentences",
  "corrections": [{{ "category": "Grammar"|"Word Choice"|"Spelling"|"Other", "original": "text", "correction": "text", "translation": "English", "explanation": "why" }}],
  "suggestedFlashcards": [{{ "hanzi": "chars", "pinyin": "tones", "meaning": "English", "explanation": "context" }}]
}}"""
        messages = [{"role": "system", "content": system_prompt}, *history]

        response = self._call_ollama(
            self.feedback_model, messages, temperature=0.7, max_tokens=800, json_mode=True
        )
        result = self._parse_json(self._safe_parse_response(response))
        if not isinstance(result, dict):
            raise UpstreamGenerationError("Feedback reply was not a JSON object")
        return result

    def generate_hints(self, history: List[Dict], scenario_title: str, objective: str) -> List[Dict]:
        transcript = "\n".join(f"{m['role'].upper()}: {m['content']}" for m in history)
        prompt = f"""You are a helpful Mandarin tutor. The user is in a language learning scenario: "{scenario_title}".
The objective is: "{objective}".

Current Conversation History:
{transcript}

Based on the current state of the conversation, suggest 3 natural and helpful ways the user can respond to achieve their objective.
For each suggestion, provide hanzi (Chinese characters), pinyin (with tone marks) and meaning (English translation).

Return ONLY a JSON object in this format:
{{"hints": [{{"hanzi": "...", "pinyin": "...", "meaning": "..."}}]}}"""

        response = self._call_ollama(
            self.chat_model, [{"role": "system", "content": prompt}], temperature=0.7,
            max_tokens=400, json_mode=True
        )
        result = self._parse_json(self._safe_parse_response(response))
        hints = result.get("hints", []) if isinstance(result, dict) else []
        return [h for h in hints if isinstance(h, dict)]

    def translate_selection(self, text: str) -> Dict:
        """English meaning of a highlighted Chinese snippet; degrades to empty strings."""
        messages = [
            {
                "role": "system",
                "content": (
                    "Translate the following Chinese snippet to English. Return ONLY JSON in this "
                    'format: {"pinyin": "...", "meaning": "..."}. Pinyin should use tone marks.'
                ),
            },
            {"role": "user", "content": text},
        ]
        try:
            response = self._call_ollama(
                self.chat_model, messages, temperature=0.3, max_tokens=150, json_mode=True
            )
            result = self._parse_json(self._safe_parse_response(response))
        except UpstreamGenerationError as e:
            logger.warning("Selection translation failed: %s", e)
            return {"pinyin": "", "meaning": ""}

        if not isinstance(result, dict):
            return {"pinyin": "", "meaning": ""}
        return {"pinyin": result.get("pinyin") or "", "meaning": result.get("meaning") or ""}

    # -------------------------------------------------------
    # HELPERS
    # -------------------------------------------------------
    def _roleplay_system_message(self, persona, objective, summary, user_name) -> Dict:
        past_context = f"Past Context: {summary}\n" if summary else ""
        content = (
            f"Roleplay: {persona}\n"
            f"User: {user_name}. Goal: {objective}\n"
            f"{past_context}"
            "Rules: 1. Speak Mandarin. 2. Be concise (2-3 sentences max). 3. Stay in character. "
            "4. Evaluate Goal: set 'COMPLETED' ONLY if ALL sub-tasks or requirements in the Goal are fully addressed. "
            "5. FAIL if off-track.\n"
            'Avoid generic responses like "...". If you\'re stuck, ask a relevant follow-up in character.\n'
            f'Return a Mandarin response first, then after a delimiter "{METADATA_DELIMITER}", return a JSON object with:\n'
            '{"translation": "English translation of YOUR Mandarin response above", "status": "ACTIVE"|"COMPLETED"|"FAILED"}'
        )
        return {"role": "system", "content": content}

    def _call_ollama(self, model, messages, temperature=0.2, max_tokens=400,
                     json_mode=False, stream=False):
        """Unified caller. Raises UpstreamGenerationError on transport or HTTP failure."""
        payload = {
            "model": model,
            "messages": messages,
            "stream": stream,
            "keep_alive": Config.LLM_KEEP_ALIVE,
            "options": {
                "temperature": temperature,
                "num_predict": max_tokens,
            },
        }
        if json_mode:
            payload["format"] = "json"

        try:
            response = requests.post(self.chat_url, json=payload, timeout=self.timeout, stream=stream)
        except requests.RequestException as e:
            raise UpstreamGenerationError(f"Ollama unreachable: {e}") from e

        if response.status_code != 200:
            response.close()
            raise UpstreamGenerationError(f"Ollama returned HTTP {response.status_code}")
        return response

    def _safe_parse_response(self, response) -> str:
        """Non-streaming mode: the body is one JSON object."""
        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamGenerationError(f"Unreadable model response: {e}") from e

        if data.get("error"):
            raise UpstreamGenerationError(str(data["error"]))
        return (data.get("message") or {}).get("content") or ""

    def _iter_stream(self, response) -> Iterator[str]:
        """Streaming mode: one JSON object per line until done=true."""
        try:
            for line in response.iter_lines(decode_unicode=True):
                if not line:
                    continue
                try:
                    data = json.loads(line)
                except ValueError as e:
                    raise UpstreamGenerationError(f"Unreadable stream chunk: {e}") from e

                if data.get("error"):
                    raise UpstreamGenerationError(str(data["error"]))

                content = (data.get("message") or {}).get("content") or ""
                if content:
                    yield content
                if data.get("done"):
                    break
        except requests.RequestException as e:
            raise UpstreamGenerationError(f"Model stream interrupted: {e}") from e
        finally:
            response.close()

    def _parse_json(self, text: str):
        """Parse JSON from model output, tolerating code fences and chatter around it."""
        text = text.strip().replace("```json", "").replace("```", "")
        try:
            return json.loads(text)
        except ValueError:
            match = re.search(r'\{.*\}', text, re.DOTALL)
            if match:
                try:
                    return json.loads(match.group(0))
                except ValueError:
                    pass
        raise UpstreamGenerationError("Model did not return valid JSON")
