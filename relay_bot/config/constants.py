NOTICES = {
    "greeting": "Hi, {name}! Send me a message and I will pass it to the assistant.",
    "help": (
        "Write your question as one or several messages. "
        "I wait a few seconds after your last message, then send everything to the assistant together."
    ),
    "reset": "Done. Your next message starts a new conversation.",
    "unsupported_content": "😶‍🌫️ Sorry, I can't read media or disappearing messages yet. Please send text.",
    "run_failed": "The assistant could not finish this request. Please try again in a moment.",
    "run_timed_out": "The assistant is taking too long to answer. Please try again later.",
    "non_text_reply": "The assistant answered with content I can't display here.",
    "internal_error": "Something went wrong while processing your message. Please try again later.",
}
