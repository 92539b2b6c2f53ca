from xiangqi_tui.input import InputState
from xiangqi_tui.service.command import SlashCommand


def test_slash_menu_lists_all_matching():
    state = InputState()
    state.set_text("/")
    assert len(state.suggestions()) == len(list(SlashCommand))
    assert state.slash_menu_open()


def test_apply_slash_pick_fills_buffer():
    state = InputState()
    state.set_text("/n")
    state.move_slash_pick(0)
    state.apply_slash_pick_to_buffer()
    assert state.text == "/new"


def test_slash_pick_moves_with_filter():
    state = InputState()
    state.set_text("/n")
    assert len(state.suggestions()) >= 2
    state.move_slash_pick(1)
    assert state.slash_pick_index() == 1
    assert state.selected_slash_command() is SlashCommand.NEXT


def test_slash_pick_wraps_backwards():
    state = InputState()
    state.set_text("/n")
    state.move_slash_pick(-1)
    assert state.slash_pick_index() == len(state.suggestions()) - 1


def test_cursor_insert_and_backspace_work():
    state = InputState()
    state.insert_char("a")
    state.insert_char("c")
    state.move_left()
    state.insert_char("b")
    assert state.text == "abc"
    state.backspace()
    assert state.text == "ac"


def test_delete_and_cursor_moves_with_wide_chars():
    state = InputState()
    state.set_text("红a黑")
    state.move_home()
    state.move_right()
    state.delete()
    assert state.text == "红黑"
    assert state.cursor == 1
    state.move_end()
    state.backspace()
    assert state.text == "红"


def test_try_slash_complete_fills_buffer():
    state = InputState()
    state.set_text("/n")
    assert state.try_slash_complete()
    assert state.text == "/new"


def test_try_slash_complete_without_match():
    state = InputState()
    state.set_text("/zzz")
    assert not state.try_slash_complete()
    assert not state.slash_menu_open()
    assert state.text == "/zzz"


def test_command_history_recall():
    state = InputState()
    state.commit_command_history("h2e2")
    state.commit_command_history("undo")
    assert state.history_prev()
    assert state.text == "undo"
    assert state.history_prev()
    assert state.text == "h2e2"
    assert not state.history_prev()
    assert state.text == "h2e2"
    assert state.history_next()
    assert state.text == "undo"
    assert state.history_next()
    assert state.text == ""


def test_edit_while_browsing_does_not_truncate_history():
    state = InputState()
    state.commit_command_history("h2e2")
    state.commit_command_history("undo")
    assert state.history_prev()
    state.insert_char("x")
    assert state.history_prev()
    assert state.text == "h2e2"
    assert state.history_next()
    assert state.text == "undo"
    assert len(state.command_history) == 2


def test_draft_restored_when_returning_to_latest_without_enter():
    state = InputState()
    state.commit_command_history("h2e2")
    state.set_text("h9g7")
    assert state.history_prev()
    assert state.text == "h2e2"
    assert state.history_next()
    assert state.text == "h9g7"


def test_browse_edit_not_committed_until_enter():
    state = InputState()
    state.commit_command_history("undo")
    assert state.history_prev()
    state.set_text("h2e2")
    state.commit_command_history("h2e2")
    assert state.command_history == ["undo", "h2e2"]


def test_repeat_commit_is_not_duplicated():
    state = InputState()
    state.commit_command_history("undo")
    state.commit_command_history("  undo ")
    state.commit_command_history("   ")
    assert state.command_history == ["undo"]


def test_take_text_clears_buffer():
    state = InputState()
    state.set_text("/new")
    assert state.take_text() == "/new"
    assert state.text == ""
    assert state.cursor == 0
    assert state.selected_slash_command() is None