from __future__ import annotations


TONE_CLAUSES = {
    "professional": "Use a professional, objective tone.",
    "casual": "Use a relaxed, casual tone, as if catching up a friend.",
    "formal": "Use a formal register suitable for a written report.",
    "friendly": "Use a warm, friendly tone and keep it easy to read.",
}

SIZE_CLAUSES = {
    "short": "Keep it short: at most 5 bullet points.",
    "medium": "Aim for a medium length: 5 to 10 bullet points.",
    "long": "Write a long summary covering every relevant topic, grouped by subject.",
    "detailed": "Write a detailed summary: cover every topic, who raised it and how it evolved.",
}

ENTERPRISE_DETAIL_CLAUSES = {
    "full": "Cover every topic discussed with its context.",
    "ultra": "Cover every topic discussed, quoting the key messages verbatim with their timestamps.",
    "audit": (
        "Produce an audit-grade record: every message that carries information must appear in the "
        "timeline, attributed and timestamped. Do not merge or omit entries."
    ),
}


def summary_system_prompt(
    language: str,
    tone: str = "professional",
    size: str = "medium",
    thematic_focus: str = "",
    include_sentiment: bool = False,
) -> str:
    clauses = [
        "You are an assistant that writes clear, well organized summaries of WhatsApp group conversations. "
        "Highlight the main topics discussed, decisions and anything that needs follow-up. "
        "Use bullet points and do not invent facts that are not in the messages.",
        TONE_CLAUSES.get(tone, TONE_CLAUSES["professional"]),
        SIZE_CLAUSES.get(size, SIZE_CLAUSES["medium"]),
    ]
    if thematic_focus.strip():
        clauses.append(
            f"Give special attention to anything related to: {thematic_focus.strip()}. "
            "Mention it first when present."
        )
    if include_sentiment:
        clauses.append(
            "End with a short 'Sentiment' section describing the overall mood of the group "
            "(positive, neutral, negative, tense) and any notable shifts."
        )
    clauses.append(f"Write the summary in {language}.")
    return " ".join(clauses)


def enterprise_system_prompt(language: str, detail_level: str = "full", thematic_focus: str = "") -> str:
    prompt = (
        "You are a corporate analyst producing a structured report of a WhatsApp group conversation. "
        "The report MUST contain these sections, in this order:\n"
        "1. Participants: for each participant, the number of messages sent and their main contributions.\n"
        "2. Timeline: a chronological bullet list where every bullet starts with the explicit timestamp "
        "[DD/MM HH:MM] taken from the messages.\n"
        "3. Decisions: every decision taken, who took it and when.\n"
        "4. Pending items: unresolved questions and open action items with their owners, if known.\n"
        "Never invent participants, timestamps or facts. "
        f"{ENTERPRISE_DETAIL_CLAUSES.get(detail_level, ENTERPRISE_DETAIL_CLAUSES['full'])}"
    )
    if thematic_focus.strip():
        prompt += f" Flag every item related to: {thematic_focus.strip()}."
    return prompt + f" Write the report in {language}."


def activity_only_clause() -> str:
    return (
        "The group had activity in the period but no text messages: only media, stickers, reactions "
        "or other non-text interactions. Say briefly that the group was active without text, "
        "mention who interacted and when, and do not speculate about the content."
    )


def summary_user_prompt(group_name: str, lines: list[str], window: str | None = None) -> str:
    header = f'Summarize the messages below from the group "{group_name}"'
    if window:
        header += f" (period: last {window}, {len(lines)} entries)"
    return header + ":\n\n" + "\n".join(lines)
