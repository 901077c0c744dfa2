"""Minimal demonstration of the streaming chat service."""

import sys

from chat_core import ChatService

if __name__ == "__main__":
    question = " ".join(sys.argv[1:]) or "당신은 누구이고 역할은?"
    service = ChatService()
    print("User:", question)
    printed = 0
    for turn in service.send_stream(question):
        print(turn.content[printed:], end="", flush=True)
        printed = len(turn.content)
    print()
    print("Session:", service.session_id)
