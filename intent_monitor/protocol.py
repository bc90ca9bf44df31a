"""
Message shapes for the Gemini Live bidirectional streaming endpoint.

Outbound builders return plain dicts ready for ``json.dumps``. Inbound frames
are parsed by shape, not by order: one server frame can carry a transcript,
model audio, a turn marker and tool calls at the same time.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Union

from .codec import decode_pcm, parse_sample_rate
from .exceptions import DecodeError
from .models import (
    GoAway,
    IntentCategory,
    IntentPolicy,
    IntentReport,
    ModelAudio,
    PcmPacket,
    SessionEvent,
    SessionOpened,
    ToolCall,
    ToolCallAcknowledgement,
    TranscriptUpdate,
    TurnComplete,
)

logger = logging.getLogger(__name__)

REPORT_INTENT = "report_intent"

_INSTRUCTION_REPORT_AND_ANSWER = """\
You are a dedicated Conversation Monitor and Assistant.

1. Listen: Monitor the user's audio stream.
2. Analyze: Detect if the user asks a QUESTION or issues an IMPERATIVE COMMAND.
3. Respond:
   - If a question is detected, formulate a concise, helpful answer.
   - If an imperative is detected, formulate a confirmation or a simulated execution response.
4. Report: IMMEDIATELY call the tool 'report_intent' with:
   - 'text': The user's exact words.
   - 'type': QUESTION or IMPERATIVE.
   - 'answer': Your generated response.

Do not generate spoken audio responses for these interactions; rely solely on the tool to convey the answer.
If there is silence or casual chatter that is not a question or command, do nothing.
"""

_INSTRUCTION_REPORT_ONLY = """\
You are a silent Conversation Monitor.

Listen to the user's audio stream. Whenever the user asks a QUESTION or issues an
IMPERATIVE COMMAND, IMMEDIATELY call the tool 'report_intent' with:
- 'text': The user's exact words.
- 'type': QUESTION or IMPERATIVE.

Do not answer, do not speak, and do not call the tool for casual chatter or silence.
"""


def report_intent_declaration(policy: IntentPolicy) -> Dict[str, Any]:
    """Function declaration for the single capability announced at setup."""
    properties: Dict[str, Any] = {
        "text": {
            "type": "STRING",
            "description": "The verbatim text of the question or command detected.",
        },
        "type": {
            "type": "STRING",
            "enum": [category.value for category in IntentCategory],
            "description": "The classification of the detected speech.",
        },
    }
    required = ["text", "type"]
    description = "Report a detected question or imperative command."
    if policy is IntentPolicy.REPORT_AND_ANSWER:
        properties["answer"] = {
            "type": "STRING",
            "description": (
                "A concise, helpful answer to the question, or a confirmation that the command "
                "is understood/simulated."
            ),
        }
        required.append("answer")
        description = "Report a detected question or imperative command and provide an answer or acknowledgment."
    return {
        "name": REPORT_INTENT,
        "description": description,
        "parameters": {"type": "OBJECT", "properties": properties, "required": required},
    }


def system_instruction(policy: IntentPolicy) -> str:
    if policy is IntentPolicy.REPORT_ONLY:
        return _INSTRUCTION_REPORT_ONLY
    return _INSTRUCTION_REPORT_AND_ANSWER


def build_setup_message(model: str, policy: IntentPolicy) -> Dict[str, Any]:
    """First client frame: model, capability, instruction and transcription request."""
    return {
        "setup": {
            "model": model,
            "generationConfig": {"responseModalities": ["AUDIO"]},
            "systemInstruction": {"parts": [{"text": system_instruction(policy)}]},
            "tools": [{"functionDeclarations": [report_intent_declaration(policy)]}],
            "inputAudioTranscription": {},
        }
    }


def build_audio_message(packet: PcmPacket) -> Dict[str, Any]:
    return {"realtimeInput": {"audio": packet.as_blob()}}


def build_tool_response(ack: ToolCallAcknowledgement) -> Dict[str, Any]:
    response: Dict[str, Any] = {"name": ack.tool_name, "response": ack.result}
    if ack.call_id is not None:
        response["id"] = ack.call_id
    return {"toolResponse": {"functionResponses": [response]}}


def parse_server_message(raw: Union[str, bytes]) -> List[SessionEvent]:
    """
    Parse one inbound frame into typed events, in a fixed order.

    Raises:
        DecodeError: If the frame is not a JSON object.
    """
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecodeError(f"Server frame is not UTF-8: {exc}") from exc
    try:
        message = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise DecodeError(f"Server frame is not valid JSON: {exc}") from exc
    if not isinstance(message, dict):
        raise DecodeError("Server frame is not a JSON object")

    events: List[SessionEvent] = []

    if "setupComplete" in message:
        events.append(SessionOpened())

    content = message.get("serverContent")
    if isinstance(content, dict):
        transcription = content.get("inputTranscription")
        if isinstance(transcription, dict) and isinstance(transcription.get("text"), str):
            if transcription["text"]:
                events.append(TranscriptUpdate(text=transcription["text"]))
        events.extend(_parse_model_audio(content.get("modelTurn")))
        if content.get("turnComplete"):
            events.append(TurnComplete())

    tool_call = message.get("toolCall")
    if isinstance(tool_call, dict):
        events.extend(_parse_function_calls(tool_call.get("functionCalls")))

    go_away = message.get("goAway")
    if isinstance(go_away, dict):
        events.append(GoAway(time_left=go_away.get("timeLeft")))

    return events


def _parse_function_calls(calls: Any) -> List[ToolCall]:
    if not isinstance(calls, list):
        if calls is not None:
            logger.warning("Ignoring malformed functionCalls: %r", calls)
        return []
    parsed: List[ToolCall] = []
    for call in calls:
        if not isinstance(call, dict):
            logger.warning("Ignoring malformed function call: %r", call)
            continue
        # a call without a usable name is still acknowledged, with an error
        name = call.get("name")
        call_id = call.get("id")
        args = call.get("args")
        parsed.append(
            ToolCall(
                call_id=call_id if isinstance(call_id, str) else None,
                name=name if isinstance(name, str) else "",
                args=args if isinstance(args, dict) else {},
            )
        )
    return parsed


def _parse_model_audio(model_turn: Any) -> List[ModelAudio]:
    if not isinstance(model_turn, dict):
        return []
    parts = model_turn.get("parts")
    if not isinstance(parts, list):
        return []
    chunks: List[ModelAudio] = []
    for part in parts:
        inline = part.get("inlineData") if isinstance(part, dict) else None
        if not isinstance(inline, dict):
            continue
        mime_type = inline.get("mimeType")
        if not isinstance(mime_type, str) or not mime_type.startswith("audio/pcm"):
            continue
        data = inline.get("data")
        if not isinstance(data, str):
            logger.warning("Dropping model audio chunk without base64 data")
            continue
        try:
            samples = decode_pcm(data)
        except DecodeError as exc:
            logger.warning("Dropping model audio chunk: %s", exc)
            continue
        chunks.append(ModelAudio(samples=samples, sample_rate=parse_sample_rate(mime_type)))
    return chunks


def parse_intent_args(args: Dict[str, Any]) -> IntentReport:
    """
    Validate ``report_intent`` arguments.

    Raises:
        DecodeError: For a missing text or an unknown category.
    """
    text = args.get("text")
    if not isinstance(text, str) or not text.strip():
        raise DecodeError("report_intent call is missing 'text'")
    raw_type = args.get("type")
    try:
        category = IntentCategory(str(raw_type).upper())
    except ValueError as exc:
        raise DecodeError(f"Unknown intent category: {raw_type!r}") from exc
    answer = args.get("answer")
    return IntentReport(text=text, category=category, answer=answer if isinstance(answer, str) and answer else None)
