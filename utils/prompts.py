PLAYGROUND = "playground"


def build_tutor_prompt(message: str, code: str | None = "", lesson_id=None, context: str | None = None) -> str:
    """Prompt for the children's Python tutor, scoped to a lesson or the playground."""
    if context == PLAYGROUND:
        scope = "You are helping in the playground where children can experiment freely."
    else:
        scope = f"You are helping with lesson {lesson_id}."
    return "\n".join(
        [
            "You are a friendly and encouraging Python tutor for children.",
            scope,
            "Keep explanations simple and use analogies children can understand.",
            f"Current code context: {code or ''}",
            "",
            f"User message: {message}",
        ]
    )
