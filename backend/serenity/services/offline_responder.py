"""
Offline Responder
=================
Canned empathetic replies used when the chat companion is unreachable:
the device is offline, the AI kill switch is off, or the LLM call failed.

Categories are checked in a fixed priority order. Crisis language always
wins, and every crisis reply carries the 988 Suicide & Crisis Lifeline.
The reply within a category is chosen from a CRC32 of the message, so the
same message always gets the same reply.
"""

from __future__ import annotations

import zlib

# ---------------------------------------------------------------------------
# Keywords (substring match on lower-cased text)
# ---------------------------------------------------------------------------

CRISIS_KEYWORDS = (
    "suicidal", "suicide", "kill myself", "end my life", "self-harm",
    "self harm", "hurt myself", "don't want to live", "want to die",
    "no reason to live", "ending it all",
)

SAD_KEYWORDS = (
    "sad", "depressed", "unhappy", "crying", "tears", "miserable",
    "heartbroken", "grief", "grieving", "loss", "lost someone",
    "devastated", "empty", "numb", "hopeless", "down",
)

ANXIOUS_KEYWORDS = (
    "anxious", "anxiety", "worried", "worry", "nervous", "panic",
    "panic attack", "scared", "fear", "terrified", "overthinking",
    "can't stop thinking", "racing thoughts", "restless", "uneasy",
)

ANGRY_KEYWORDS = (
    "angry", "mad", "furious", "rage", "frustrated", "irritated",
    "annoyed", "pissed", "hate", "resentment", "bitter",
)

STRESSED_KEYWORDS = (
    "stressed", "stress", "overwhelmed", "pressure", "burnout",
    "burnt out", "exhausted", "drained", "tired", "overloaded",
    "too much", "can't handle", "breaking point",
)

LONELY_KEYWORDS = (
    "lonely", "alone", "isolated", "no friends", "no one cares",
    "nobody", "disconnected", "left out", "abandoned", "rejected",
)

HAPPY_KEYWORDS = (
    "happy", "great", "amazing", "wonderful", "excited", "joy",
    "good day", "fantastic", "blessed", "thrilled", "grateful",
    "feeling good", "awesome", "excellent", "cheerful",
)

GRATITUDE_KEYWORDS = (
    "thank you", "thanks", "appreciate", "helpful", "helped me",
    "you're great", "you help", "means a lot",
)

SLEEP_KEYWORDS = (
    "can't sleep", "insomnia", "sleep", "nightmare", "nightmares",
    "restless night", "waking up", "trouble sleeping",
)

GREETING_KEYWORDS = (
    "hello", "hi", "hey", "good morning", "good evening",
    "good afternoon", "how are you", "what's up",
)

# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

CRISIS_RESPONSES = (
    "I hear you, and I'm really glad you reached out 💙\n\nYou're not alone in this. "
    "Please reach out to the 988 Suicide & Crisis Lifeline — call or text 988. "
    "They're available 24/7 and can help.\n\nI'm here for you, and your life matters.",
    "Thank you for trusting me with this 💙\n\nPlease contact the 988 Suicide & Crisis "
    "Lifeline right now — call or text 988. You deserve support from someone who can "
    "truly help.\n\nYou matter, and things can get better.",
    "I care about you, and what you're feeling is important 💙\n\nPlease reach out to "
    "the 988 Suicide & Crisis Lifeline (call or text 988) — they're trained to help "
    "with exactly what you're going through.\n\nYou don't have to face this alone.",
)

SAD_RESPONSES = (
    "I'm sorry you're feeling this way 💙\n\nIt's okay to feel sad — your emotions are "
    "valid. Sometimes just acknowledging sadness is the first step to healing.\n\n"
    "Would you like to talk more about what's making you feel this way?",
    "I hear you, and I want you to know that sadness is a natural part of being human "
    "💙\n\nBe gentle with yourself right now. You don't have to have all the answers "
    "today.\n\nWhat's weighing on your heart?",
    "That sounds really tough, and I'm here for you 💙\n\nSometimes the bravest thing "
    "we can do is let ourselves feel. You don't have to push through this alone.\n\n"
    "Take a deep breath. Is there something specific that triggered this feeling?",
    "I'm sorry you're going through this 💙\n\nRemember, it's okay to not be okay. "
    "Your feelings are valid, and this moment will pass.\n\nWould it help to write "
    "down what you're feeling? Sometimes getting it out of your head can bring a "
    "little relief.",
)

ANXIOUS_RESPONSES = (
    "I can hear that you're feeling anxious, and that's really uncomfortable 💙\n\n"
    "Let's try something: Take a slow breath in for 4 counts, hold for 4, and breathe "
    "out for 6. Repeat a few times.\n\nYou're safe right now. What's on your mind?",
    "Anxiety can feel so overwhelming, but you're not alone in this 💙\n\nTry grounding "
    "yourself: name 5 things you can see, 4 you can touch, 3 you can hear, 2 you can "
    "smell, and 1 you can taste.\n\nWhat's causing you to feel this way?",
    "I understand that feeling of worry — it's tough 💙\n\nRemember: your anxious "
    "thoughts are not facts. They're your brain trying to protect you, even when "
    "there's no real danger.\n\nWould it help to talk through what's worrying you?",
    "It's okay to feel anxious — you're not broken, you're human 💙\n\nTry placing "
    "your hand on your chest and taking 3 deep breaths. Feel your heartbeat slow down."
    "\n\nI'm here to listen whenever you're ready to share.",
)

ANGRY_RESPONSES = (
    "I can tell you're frustrated, and that's completely valid 💙\n\nAnger often comes "
    "from our boundaries being crossed or our needs not being met. It's a signal, not "
    "a weakness.\n\nWant to tell me what happened?",
    "It makes sense that you'd feel angry about this 💙\n\nYour feelings are valid. "
    "Sometimes the best thing to do is pause, take a few breaths, and then decide how "
    "you want to respond.\n\nWhat triggered this feeling?",
    "I hear your frustration, and I want you to know it's okay to feel this way 💙\n\n"
    "Anger is a natural emotion — what matters is how we process it. Would it help to "
    "talk through the situation?",
)

STRESSED_RESPONSES = (
    "It sounds like you're carrying a lot right now 💙\n\nRemember, you don't have to "
    "do everything at once. Try picking just one small thing to focus on, and give "
    "yourself permission to let the rest wait.\n\nWhat's the biggest thing on your plate?",
    "Being overwhelmed is exhausting, and I'm sorry you're feeling this way 💙\n\nTake "
    "a moment to breathe. You've handled tough things before, and you'll get through "
    "this too.\n\nWould it help to list out what's stressing you? Sometimes organizing "
    "it makes it feel more manageable.",
    "You deserve a break, even if it's just five minutes 💙\n\nStep away from what's "
    "stressing you, stretch, drink some water. Small resets can make a big difference."
    "\n\nWhat's been the most overwhelming part?",
)

LONELY_RESPONSES = (
    "I'm here with you, and you're not as alone as it might feel right now 💙\n\n"
    "Loneliness is one of the most painful feelings, and it's brave of you to talk "
    "about it.\n\nIs there someone in your life — even someone you haven't talked to "
    "in a while — you could reach out to today?",
    "Feeling lonely can be so heavy, and I'm sorry you're experiencing this 💙\n\n"
    "Connection doesn't have to be big — even a small text to someone or a walk outside "
    "can help.\n\nWould you like to talk about what's making you feel isolated?",
    "You matter, and your presence in this world is valuable 💙\n\nLoneliness doesn't "
    "mean you're unwanted — sometimes life just creates distance. But bridges can be "
    "rebuilt.\n\nWhat would make you feel more connected right now?",
)

HAPPY_RESPONSES = (
    "That's wonderful to hear! 🌟\n\nI love that you're sharing the good moments too. "
    "Celebrating small wins is so important for our wellbeing.\n\nWhat made today feel "
    "so great?",
    "I'm so happy for you! 😊\n\nPositive moments like these are worth savoring. Try "
    "taking a mental snapshot of how you feel right now — you can come back to it on "
    "harder days.\n\nWhat's bringing you joy?",
    "That's amazing! Your happiness is contagious 🌿\n\nRemember this feeling — it's "
    "proof that good things happen, even when life gets tough sometimes.\n\nKeep riding "
    "this wave! What else is going well?",
)

GRATITUDE_RESPONSES = (
    "You're so welcome! It means a lot that I can be here for you 💙\n\nRemember, you "
    "can come back anytime — I'm always here to listen.\n\nHow are you feeling right now?",
    "I'm really glad I could help! 💙\n\nYour willingness to open up takes real courage. "
    "Keep being kind to yourself.\n\nIs there anything else on your mind?",
    "Thank YOU for trusting me with your thoughts 💙\n\nIt's a privilege to be part of "
    "your wellness journey. Keep taking those small steps forward.\n\nAnything else "
    "you'd like to talk about?",
)

SLEEP_RESPONSES = (
    "Sleep troubles can really affect everything else 💙\n\nHere's something to try: "
    "dim your lights an hour before bed, put your phone face-down, and do some deep "
    "breathing.\n\nHave you noticed any patterns with your sleep difficulties?",
    "Not being able to sleep is so frustrating 💙\n\nTry a body scan: starting from your "
    "toes, consciously relax each muscle group all the way up to your head. It can help "
    "calm your nervous system.\n\nWhat's usually on your mind when you can't sleep?",
    "Your body and mind both need rest, and I'm sorry you're struggling with this 💙\n\n"
    "Avoid screens 30 minutes before bed, keep your room cool, and try listening to "
    "calming sounds.\n\nWould you like to tell me more about what's keeping you up?",
)

GREETING_RESPONSES = (
    "Hey there! I'm glad you're here 💙\n\nI'm Serenity, your wellness companion. I'm "
    "currently in offline mode, so my responses are limited — but I'm still here to "
    "listen!\n\nHow are you feeling today?",
    "Hello! Welcome back 🌿\n\nI'm in offline mode right now, but I'm still here for you "
    "with some supportive words.\n\nWhat's on your mind today?",
    "Hi! It's good to see you 💙\n\nI'm running in offline mode, so I have a more limited "
    "set of responses. But your feelings still matter, and I'm here.\n\nHow has your day "
    "been?",
)

DEFAULT_RESPONSES = (
    "Thank you for sharing that with me 💙\n\nI'm currently in offline mode, so my "
    "responses are limited. But I'm still here to listen, and everything you share will "
    "be saved.\n\nWhen you're back online, I'll be able to give you a more thoughtful "
    "response. How are you feeling right now?",
    "I appreciate you opening up 💙\n\nI'm in offline mode right now, but I want you to "
    "know — your thoughts and feelings are valid, no matter what.\n\nKeep talking to me; "
    "it all gets saved and I'll catch up when we're back online.",
    "I hear you, and I'm here for you 💙\n\nI'm currently offline, so I have limited "
    "responses. But remember: just putting your feelings into words is a powerful act "
    "of self-care.\n\nWhat else is on your mind?",
    "Your words matter, even when I'm offline 💙\n\nI may not be able to give my fullest "
    "response right now, but everything you share is being saved.\n\nTake a deep breath "
    "and know that you're doing something great by talking about what you feel.",
    "I want you to know that I'm listening 💙\n\nI'm in offline mode, so I can't give "
    "you my best thoughtful response, but I'm still here.\n\nRemember to be kind to "
    "yourself today. Is there more you'd like to share?",
)

# Checked top to bottom; first match wins.
CATEGORY_PRIORITY: tuple[tuple[str, tuple[str, ...], tuple[str, ...]], ...] = (
    ("crisis", CRISIS_KEYWORDS, CRISIS_RESPONSES),
    ("sad", SAD_KEYWORDS, SAD_RESPONSES),
    ("anxious", ANXIOUS_KEYWORDS, ANXIOUS_RESPONSES),
    ("angry", ANGRY_KEYWORDS, ANGRY_RESPONSES),
    ("stressed", STRESSED_KEYWORDS, STRESSED_RESPONSES),
    ("lonely", LONELY_KEYWORDS, LONELY_RESPONSES),
    ("happy", HAPPY_KEYWORDS, HAPPY_RESPONSES),
    ("gratitude", GRATITUDE_KEYWORDS, GRATITUDE_RESPONSES),
    ("sleep", SLEEP_KEYWORDS, SLEEP_RESPONSES),
    ("greeting", GREETING_KEYWORDS, GREETING_RESPONSES),
)


def classify_offline_category(text: str) -> str:
    """Name of the first matching category, or ``"default"``."""
    lowered = (text or "").lower()
    for name, keywords, _ in CATEGORY_PRIORITY:
        if any(keyword in lowered for keyword in keywords):
            return name
    return "default"


def _pick(responses: tuple[str, ...], text: str) -> str:
    return responses[zlib.crc32(text.encode("utf-8")) % len(responses)]


def get_offline_response(text: str) -> str:
    """Empathetic canned reply for *text*."""
    lowered = (text or "").lower()
    for _, keywords, responses in CATEGORY_PRIORITY:
        if any(keyword in lowered for keyword in keywords):
            return _pick(responses, lowered)
    return _pick(DEFAULT_RESPONSES, lowered)
