import pytest

from partyhub.backend.admission import StaticPlanSource
from partyhub.backend.errors import IllegalTransitionError, NotFoundError, QuotaExceededError, ValidationError
from partyhub.backend.trivia import TriviaGame, create_trivia_store


def make_game(plan: str = "freemium") -> TriviaGame:
    return TriviaGame(store=create_trivia_store(), plans=StaticPlanSource(default_plan=plan))


def question(text: str = "Capital of France?", correct: int = 1) -> dict:
    return {"text": text, "options": ["Rome", "Paris", "Lima"], "correctOption": correct}


def test_add_question_validates_and_defaults_duration() -> None:
    game = make_game()

    with pytest.raises(ValidationError):
        game.add_question("evt-1", {"text": "Only one option", "options": ["a"], "correctOption": 0})
    with pytest.raises(ValidationError):
        game.add_question("evt-1", {"text": "Bad index", "options": ["a", "b"], "correctOption": 2})

    added = game.add_question("evt-1", question()).data["question"]
    assert added["durationSeconds"] == 10
    assert len(game.state("evt-1")["questions"]) == 1


def test_question_quota_uses_supplied_plan() -> None:
    game = make_game()
    for index in range(5):
        game.add_question("evt-1", question(f"Q{index}"))

    with pytest.raises(QuotaExceededError):
        game.add_question("evt-1", question("Q6"))
    assert game.state("evt-1")["hostPlan"] is None

    game.add_question("evt-1", question("Q6"), plan="premium")
    assert game.state("evt-1")["hostPlan"] == "premium"
    assert len(game.state("evt-1")["questions"]) == 6


def test_update_delete_and_bulk_duration() -> None:
    game = make_game()
    first = game.add_question("evt-1", question("Q1")).data["question"]
    second = game.add_question("evt-1", question("Q2")).data["question"]

    game.update_question("evt-1", first["id"], {"text": "Q1 edited"})
    with pytest.raises(ValidationError):
        game.update_question("evt-1", first["id"], {"correctOption": 9})
    game.delete_question("evt-1", second["id"])
    result = game.set_duration("evt-1", 25)

    questions = result.state["questions"]
    assert [entry["text"] for entry in questions] == ["Q1 edited"]
    assert questions[0]["durationSeconds"] == 25
    with pytest.raises(NotFoundError):
        game.delete_question("evt-1", second["id"])
    with pytest.raises(ValidationError):
        game.set_duration("evt-1", 0)


def test_full_round_scores_players() -> None:
    game = make_game()
    first = game.add_question("evt-1", question("Q1", correct=1)).data["question"]
    second = game.add_question("evt-1", question("Q2", correct=0)).data["question"]
    game.join("evt-1", "p1", "Ana")
    game.join("evt-1", "p2", "Bo")

    with pytest.raises(IllegalTransitionError):
        game.next_question("evt-1")

    game.start("evt-1")
    game.next_question("evt-1")
    assert game.answer("evt-1", "p1", first["id"], 1).data["correct"] is True
    assert game.answer("evt-1", "p2", first["id"], 2).data["correct"] is False
    with pytest.raises(IllegalTransitionError):
        game.answer("evt-1", "p1", first["id"], 1)
    with pytest.raises(ValidationError):
        game.answer("evt-1", "p1", second["id"], 0)

    game.reveal_answer("evt-1")
    game.next_question("evt-1")
    assert game.state("evt-1")["isAnswerRevealed"] is False
    game.answer("evt-1", "p2", second["id"], 0)
    with pytest.raises(IllegalTransitionError):
        game.next_question("evt-1")

    state = game.end("evt-1").state
    assert state["status"] == "FINISHED"
    assert state["players"]["p1"]["score"] == 1
    assert state["players"]["p2"]["score"] == 1


def test_answer_after_reveal_is_rejected() -> None:
    game = make_game()
    asked = game.add_question("evt-1", question()).data["question"]
    game.join("evt-1", "p1", "Ana")
    game.start("evt-1")
    game.next_question("evt-1")
    game.reveal_answer("evt-1")

    with pytest.raises(IllegalTransitionError):
        game.answer("evt-1", "p1", asked["id"], 1)


def test_cannot_delete_question_already_asked() -> None:
    game = make_game()
    asked = game.add_question("evt-1", question("Q1")).data["question"]
    upcoming = game.add_question("evt-1", question("Q2")).data["question"]
    game.start("evt-1")
    game.next_question("evt-1")

    with pytest.raises(IllegalTransitionError):
        game.delete_question("evt-1", asked["id"])
    assert game.delete_question("evt-1", upcoming["id"]).changed


def test_start_requires_questions_and_clears_scores() -> None:
    game = make_game()
    with pytest.raises(ValidationError):
        game.start("evt-1")

    asked = game.add_question("evt-1", question()).data["question"]
    game.join("evt-1", "p1", "Ana")
    game.start("evt-1")
    game.next_question("evt-1")
    game.answer("evt-1", "p1", asked["id"], 1)
    game.end("evt-1")

    restarted = game.start("evt-1").state
    assert restarted["players"]["p1"]["score"] == 0
    assert restarted["players"]["p1"]["answers"] == {}
    assert restarted["currentQuestionIndex"] == -1


def test_rejoin_keeps_score_and_reset_keeps_background() -> None:
    game = make_game()
    game.configure("evt-1", {"backgroundUrl": "https://cdn.example/bg.png"})
    game.join("evt-1", "p1", "Ana")
    game.state("evt-1")["players"]["p1"]["score"] = 3

    assert game.join("evt-1", "p1", "Ana").changed is False
    assert game.state("evt-1")["players"]["p1"]["score"] == 3

    state = game.reset("evt-1").state
    assert state["backgroundUrl"] == "https://cdn.example/bg.png"
    assert state["players"] == {}
