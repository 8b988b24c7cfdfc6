from unittest.mock import patch

from memstack.confirm import confirm_action


def test_assume_yes_skips_prompt():
    with patch("memstack.confirm.Confirm.ask") as mock_ask:
        assert confirm_action("Continue?", assume_yes=True) is True
        mock_ask.assert_not_called()


@patch("memstack.confirm.sys.stdin")
def test_non_interactive_declines(mock_stdin):
    mock_stdin.isatty.return_value = False
    assert confirm_action("Continue?") is False


@patch("memstack.confirm.Confirm.ask", return_value=True)
@patch("memstack.confirm.sys.stdin")
def test_interactive_yes(mock_stdin, mock_ask):
    mock_stdin.isatty.return_value = True
    assert confirm_action("Continue?") is True
    mock_ask.assert_called_once_with("Continue?", default=False)


@patch("memstack.confirm.Confirm.ask", side_effect=EOFError)
@patch("memstack.confirm.sys.stdin")
def test_eof_declines(mock_stdin, mock_ask):
    mock_stdin.isatty.return_value = True
    assert confirm_action("Continue?") is False
