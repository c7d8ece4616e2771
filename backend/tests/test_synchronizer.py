import threading

from conftest import FakeClock
from quizroom.client.events import QUESTION, REVEAL, FetchQuestion, PhaseTimer, PostAnswer
from quizroom.client.scheduler import PhaseScheduler
from quizroom.client.synchronizer import ClientSynchronizer

T0 = 1_000_000.0


def room(round_number=1, question_id=11, ends_at=T0 + 20, version=1):
    return {'code': 'ABCDEF', 'round_number': round_number, 'current_question_id': question_id,
            'round_ends_at': ends_at, 'version': version, 'status': 'active'}


def question(question_id=11):
    return {'id': question_id, 'prompt': 'Q?', 'choices': ['a', 'b', 'c'], 'correct_index': 1}


def test_scheduler_keeps_a_single_timer():
    scheduler = PhaseScheduler()
    scheduler.sync(PhaseTimer('question_deadline', T0 + 20, 1))
    scheduler.sync(PhaseTimer('reveal_answer', T0 + 6, 2))
    assert scheduler.due(T0 + 5) is None
    fired = scheduler.due(T0 + 6)
    assert (fired.kind, fired.token) == ('reveal_answer', 2)
    assert scheduler.active is None
    assert scheduler.due(T0 + 30) is None


def test_events_apply_only_on_poll():
    clock = FakeClock(T0)
    commands = []
    sync = ClientSynchronizer(clock=clock, on_command=commands.append)

    worker = threading.Thread(target=sync.push_room, args=(room(),))
    worker.start()
    worker.join()
    assert sync.state.room is None

    sync.poll()
    assert sync.state.phase == QUESTION
    assert commands == [FetchQuestion(11)]
    assert sync.scheduler.active == sync.state.timer


def test_poll_fires_due_timer():
    clock = FakeClock(T0)
    sync = ClientSynchronizer(clock=clock)
    sync.push_room(room())
    sync.push_question(question())
    sync.poll()

    clock.now = T0 + 20
    state = sync.poll()
    assert state.phase == REVEAL
    assert sync.scheduler.active.kind == 'reveal_answer'


def test_select_answer_is_applied_on_poll():
    clock = FakeClock(T0)
    commands = []
    sync = ClientSynchronizer(clock=clock, on_command=commands.append)
    sync.push_room(room())
    sync.poll()
    commands.clear()

    assert sync.select_answer(1) is True
    # Queued, not applied, until the owner polls
    assert sync.state.phase == QUESTION
    assert commands == []

    sync.poll()
    assert sync.state.phase == REVEAL
    assert sync.select_answer(2) is False
    assert commands == [PostAnswer(1, 1)]


def test_taps_queued_twice_post_once():
    clock = FakeClock(T0)
    commands = []
    sync = ClientSynchronizer(clock=clock, on_command=commands.append)
    sync.push_room(room())
    sync.poll()
    commands.clear()

    assert sync.select_answer(0) is True
    assert sync.select_answer(2) is True
    sync.poll()
    assert commands == [PostAnswer(1, 0)]
    assert sync.state.selected_answer == 0


def test_player_updates_leave_phase_and_timer():
    clock = FakeClock(T0)
    sync = ClientSynchronizer(clock=clock)
    sync.push_room(room())
    sync.poll()
    timer = sync.scheduler.active

    sync.push_players([{'id': 1, 'label': 'Team Owls', 'color': 'teal', 'score': 750}])
    sync.poll()
    assert sync.state.players[0].score == 750
    assert sync.state.phase == QUESTION
    assert sync.scheduler.active == timer


def test_listeners_see_state_changes():
    clock = FakeClock(T0)
    seen = []
    sync = ClientSynchronizer(clock=clock)
    sync.subscribe(lambda state: seen.append(state.phase))
    sync.push_room(room())
    sync.push_room(room())  # duplicate version, no change
    sync.poll()
    assert seen == [QUESTION]
