import logging
import mimetypes
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

import httpx

logger = logging.getLogger("chat_relay.client")

GREETING = "Hello, I'm ChatGPT! Ask me anything!"
ASSISTANT_NAME = "ChatGPT"


@dataclass(frozen=True)
class TranscriptEntry:
    role: Literal["user", "assistant"]
    content: str
    image: str | None = None


@dataclass
class Transcript:
    """Session-local ordered record of chat turns, seeded with a greeting."""

    greeting: str = GREETING
    entries: list[TranscriptEntry] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.entries:
            self.reset()

    def reset(self) -> None:
        self.entries = [TranscriptEntry(role="assistant", content=self.greeting)]

    def append(self, entry: TranscriptEntry) -> None:
        self.entries.append(entry)

    def as_messages(self, system_prompt: str | None = "") -> list[dict[str, str]]:
        messages = []
        if system_prompt is not None:
            messages.append({"role": "system", "content": system_prompt})
        messages.extend({"role": e.role, "content": e.content} for e in self.entries)
        return messages

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)


class ChatClient:
    """Turns user input into relay calls and records replies in a transcript.

    Every call to :meth:`send` issues exactly one HTTP request. Calls are not
    queued or de-duplicated; concurrent sends append their replies in the
    order the responses arrive.
    """

    def __init__(
        self,
        relay_url: str,
        system_prompt: str | None = "",
        transcript: Transcript | None = None,
        timeout_s: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.system_prompt = system_prompt
        self.transcript = transcript if transcript is not None else Transcript()
        self._pending = 0
        self._http = httpx.AsyncClient(
            base_url=relay_url.rstrip("/"),
            timeout=timeout_s,
            transport=transport,
        )

    @property
    def is_typing(self) -> bool:
        return self._pending > 0

    async def send(self, text: str, image: Path | str | None = None) -> TranscriptEntry | None:
        """Run one turn and return the assistant entry, or ``None`` on failure.

        A text turn is recorded before the call, since it is part of the
        history sent to the relay, and stays recorded if the call fails. An
        image turn is recorded together with its reply, so a failed upload
        leaves the transcript untouched.
        """
        user_entry = TranscriptEntry(
            role="user",
            content=text,
            image=str(image) if image is not None else None,
        )
        if image is None:
            self.transcript.append(user_entry)

        self._pending += 1
        try:
            if image is None:
                reply = await self._send_chat()
            else:
                reply = await self._send_upload(text, Path(image))
        except (httpx.HTTPError, ValueError, KeyError, OSError) as exc:
            logger.error("relay_call_failed: %s", exc)
            return None
        finally:
            self._pending -= 1

        if image is not None:
            self.transcript.append(user_entry)
        self.transcript.append(reply)
        return reply

    async def _send_chat(self) -> TranscriptEntry:
        body = {"messages": self.transcript.as_messages(self.system_prompt)}
        response = await self._http.post("/api/chat", json=body)
        response.raise_for_status()
        data = response.json()
        return TranscriptEntry(role="assistant", content=str(data["reply"]))

    async def _send_upload(self, text: str, image: Path) -> TranscriptEntry:
        content_type = mimetypes.guess_type(image.name)[0] or "application/octet-stream"
        files = {"file": (image.name, image.read_bytes(), content_type)}
        data = {"text": text} if text else None
        response = await self._http.post("/api/upload", files=files, data=data)
        response.raise_for_status()
        payload = response.json()
        return TranscriptEntry(
            role="assistant",
            content=str(payload["reply"]),
            image=str(payload["imageUrl"]),
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "ChatClient":
        return self

    async def __aexit__(self, *_exc_info) -> None:
        await self.aclose()
