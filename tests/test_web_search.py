from canvasgate.orchestrator import DEFAULT_TRIGGERS, LexicalWebSearchPredicate
from canvasgate.types import Message


def test_trigger_terms_match_case_insensitively():
    predicate = LexicalWebSearchPredicate()

    assert predicate([Message.user("What is the LATEST on the launch?")])
    assert predicate([Message.user("Any news from the web?")])


def test_plain_request_does_not_search():
    predicate = LexicalWebSearchPredicate()

    assert not predicate([Message.user("Summarize the board")])
    assert not predicate([Message.user("Rewrite this paragraph more concisely")])
    assert not predicate([])


def test_only_the_latest_user_message_counts():
    predicate = LexicalWebSearchPredicate()

    earlier_trigger = [
        Message.user("Search for recent papers"),
        Message.assistant("Here are three papers."),
        Message.user("Summarize the second one"),
    ]
    latest_trigger = [
        Message.user("Summarize the board"),
        Message.assistant("Explain what is current news today"),
        Message.user("Any recent changes?"),
    ]

    assert not predicate(earlier_trigger)
    assert predicate(latest_trigger)


def test_system_and_assistant_messages_are_ignored():
    predicate = LexicalWebSearchPredicate()

    assert not predicate([Message.system("Search the web when asked"), Message.assistant("latest news")])


def test_custom_triggers_replace_the_defaults():
    predicate = LexicalWebSearchPredicate(triggers=["Lookup", "stock price"])

    assert predicate([Message.user("lookup the founders")])
    assert predicate([Message.user("What's the STOCK PRICE of ACME?")])
    assert not predicate([Message.user("What is the latest news?")])
    assert "latest" in DEFAULT_TRIGGERS
