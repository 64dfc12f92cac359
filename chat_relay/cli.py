#!/usr/bin/env python3
"""Terminal chat client for the relay.

Usage:
    # single prompt
    chat-relay-cli "What is 2+2?"

    # image turn
    chat-relay-cli --image cat.png "make it a watercolor"

    # interactive mode
    chat-relay-cli -i
    chat-relay-cli -i --relay-url http://localhost:5001
"""
import argparse
import asyncio
import logging
import os
import shlex
from pathlib import Path

from chat_relay.client import ASSISTANT_NAME, ChatClient, TranscriptEntry

DEFAULT_RELAY_URL = os.getenv("RELAY_URL", "http://localhost:10000")
TYPING_INDICATOR = f"{ASSISTANT_NAME} is typing..."


def render_entry(entry: TranscriptEntry) -> str:
    speaker = ASSISTANT_NAME if entry.role == "assistant" else "You"
    line = f"{speaker}: {entry.content}"
    if entry.image:
        line += f"\n  [image] {entry.image}"
    return line


async def _turn(client: ChatClient, text: str, image: Path | None = None) -> None:
    print(TYPING_INDICATOR)
    reply = await client.send(text, image=image)
    if reply is None:
        print("✗ No reply from the relay (see log for details)")
        return
    print(render_entry(reply))


async def single_query(relay_url: str, prompt: str, image: Path | None) -> None:
    async with ChatClient(relay_url) as client:
        await _turn(client, prompt, image)


async def interactive_mode(relay_url: str) -> None:
    async with ChatClient(relay_url) as client:
        print("\n" + "=" * 50)
        print("Interactive mode")
        print("Type 'quit' or 'exit' to leave, 'new' to start over")
        print("Send an image with: /image <path> [prompt]")
        print("=" * 50 + "\n")
        for entry in client.transcript:
            print(render_entry(entry))

        while True:
            try:
                line = input("You: ").strip()
            except (KeyboardInterrupt, EOFError):
                print("\nBye!")
                break

            if not line:
                continue
            if line.lower() in ("quit", "exit", "q"):
                print("Bye!")
                break
            if line.lower() == "new":
                client.transcript.reset()
                print(render_entry(client.transcript.entries[0]))
                continue

            if line.startswith("/image "):
                parts = shlex.split(line[len("/image "):])
                if not parts:
                    print("usage: /image <path> [prompt]")
                    continue
                await _turn(client, " ".join(parts[1:]), Path(parts[0]))
            else:
                await _turn(client, line)


def main() -> None:
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s %(message)s")

    parser = argparse.ArgumentParser(description="Terminal client for the chat relay")
    parser.add_argument("prompt", nargs="?", help="message to send")
    parser.add_argument("--image", type=Path, help="image file to upload with the prompt")
    parser.add_argument("--relay-url", default=DEFAULT_RELAY_URL, help="relay base URL")
    parser.add_argument("-i", "--interactive", action="store_true", help="interactive mode")

    args = parser.parse_args()

    if args.interactive:
        asyncio.run(interactive_mode(args.relay_url))
    elif args.prompt or args.image:
        asyncio.run(single_query(args.relay_url, args.prompt or "", args.image))
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
