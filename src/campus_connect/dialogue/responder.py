from __future__ import annotations

from campus_connect.data_models import (
    BotReply,
    ClassificationResult,
    ConversationContext,
    Intent,
)
from campus_connect.dialogue.navigation import navigation_for

GREETING_REPLY = "Hey! What can I help you with today? I can find tutors, post a help request, or find teammates."
THANKS_REPLY = "You're welcome! Feel free to ask if you need anything else. Good luck with your studies!"


class DialogueResponder:
    """Turns a classification into reply text and an optional navigation."""

    def respond(
        self,
        classification: ClassificationResult,
        context: ConversationContext | None = None,
        result_count: int | None = None,
    ) -> BotReply:
        context = context or ConversationContext()
        intent = classification.intent

        if intent == Intent.GREETING:
            return BotReply(text=GREETING_REPLY)
        if intent == Intent.THANKS:
            return BotReply(text=THANKS_REPLY)

        navigation = navigation_for(classification)
        if navigation is None:
            return BotReply(text=self._clarify(classification, context))

        if result_count is not None and intent != Intent.BECOME_TUTOR:
            text = self._result_summary(classification, result_count)
        else:
            text = self._confirmation(classification)
        return BotReply(text=text, navigation=navigation)

    def _confirmation(self, result: ClassificationResult) -> str:
        subject, department = result.subject, result.department

        if result.intent == Intent.FIND_TUTOR:
            if subject and department:
                return f"Perfect! Looking for {department} tutors who know {subject}. Taking you there now."
            if subject:
                return f"Great choice! Finding tutors for {subject}. Taking you to the tutor listings."
            if department:
                return f"Showing {department} tutors for you. Tell me a subject to narrow it down."
            return "Taking you to the tutor listings. Tell me a subject and I can narrow it down."

        if result.intent == Intent.HELP_REQUEST:
            if subject and department:
                return (
                    f"I understand, {subject} can be challenging! Let's post a help request "
                    f"so {department} tutors can reach out to you."
                )
            if subject:
                return (
                    f"I understand, {subject} can be challenging! Let's post a help request "
                    "so tutors can reach out to you."
                )
            return "No problem! Let's post a help request so tutors can reach out to you."

        if result.intent == Intent.BECOME_TUTOR:
            if subject:
                return f"That's awesome! Students need help with {subject}. Let's set up your tutor profile."
            return "That's awesome! Let's set up your tutor profile so students can find you."

        # Intent.FIND_TEAMMATE
        if subject and department:
            return f"Let's find {department} teammates who know {subject}. Taking you to the teammate listings."
        if subject:
            return f"Let's find teammates with {subject} skills. Taking you to the teammate listings."
        if department:
            return f"Let's find teammates from {department}. Taking you to the teammate listings."
        return "Let's find you some teammates! Taking you to the teammate listings."

    def _result_summary(self, result: ClassificationResult, count: int) -> str:
        noun = "teammate" if result.intent == Intent.FIND_TEAMMATE else "tutor"
        scope = _scope_phrase(result)

        if count <= 0:
            return (
                f"Sorry, I couldn't find any {noun}s{scope} yet. "
                "Try a different subject, drop the department filter, "
                "or post a help request so tutors can find you."
            )
        if count == 1:
            return f"I found one {noun}{scope}. Check them out!"
        return f"I found {count} {noun}s{scope}. Check them out!"

    @staticmethod
    def _clarify(result: ClassificationResult, context: ConversationContext) -> str:
        if result.department and not context.last_subject:
            return (
                f"Got it, {result.department}. Are you looking for a tutor, teammates, "
                "or do you want to post a help request?"
            )
        if context.last_subject:
            return (
                f"I'm not sure I followed. Do you still want help with {context.last_subject}, "
                "or are you looking for something else?"
            )
        return (
            "I'm not sure I understood. You can ask me to find a tutor for a subject, "
            "post a help request, find teammates, or become a tutor. What would you like?"
        )


def _scope_phrase(result: ClassificationResult) -> str:
    parts = []
    if result.subject:
        parts.append(f" for {result.subject}")
    if result.department:
        parts.append(f" in {result.department}")
    return "".join(parts)
