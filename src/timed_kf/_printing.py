"""Tensor layouts used by the reprs."""

from __future__ import annotations

import contextlib

import torch

SPLIT_LENGTH = 110


if hasattr(torch._tensor_str, "printoptions"):  # noqa: SLF001
    printoptions = torch._tensor_str.printoptions  # noqa: SLF001
else:

    @contextlib.contextmanager
    def printoptions(**kwargs):
        """Change pytorch printoptions temporarily. From the future of pytorch."""
        old_printoptions = torch._tensor_str.PRINT_OPTS  # noqa: SLF001
        torch.set_printoptions(**kwargs)
        try:
            yield
        finally:
            torch._tensor_str.PRINT_OPTS = old_printoptions  # noqa: SLF001


def _lines(tensor: torch.Tensor, linewidth: int) -> list[str]:
    with printoptions(profile="short", sci_mode=False, linewidth=linewidth):
        return str(tensor).split("\n")


def named(title: str, name: str, tensor: torch.Tensor) -> str:
    """Display a named tensor: ``title: name = tensor(...)``."""
    tensor_repr = _lines(tensor, 100)
    header = f"{title}: {name} = "
    headers = [header] + [" " * len(header)] * (len(tensor_repr) - 1)
    return "\n".join(["".join(lines) for lines in zip(headers, tensor_repr)])


def side_by_side(title: str, left: tuple[str, torch.Tensor], right: tuple[str, torch.Tensor]) -> str:
    """Display two named tensors side by side, or one below the other if too long.

    Example::

        Belief: x = tensor([[0.],   &  P = tensor([[1., 0.],
                            [1.]])                 [0., 1.]])
    """
    left_repr = _lines(left[1], 80)
    right_repr = _lines(right[1], 80)

    left_header = f"{title}: {left[0]} = "
    right_header = f"{right[0]} = "
    headers = [left_header] + [" " * len(left_header)] * (len(left_repr) - 1)

    max_char_left = max(len(line) for line in left_repr)
    max_char_right = max(len(line) for line in right_repr)
    if max_char_left + max_char_right <= SPLIT_LENGTH and len(left_repr) == len(right_repr):  # Single line
        left_repr = [line + " " * (max_char_left - len(line)) for line in left_repr]
        separators = ["  &  " + right_header] + [" " * (5 + len(right_header))] * (len(left_repr) - 1)
        return "\n".join(["".join(lines) for lines in zip(headers, left_repr, separators, right_repr)])

    # Two lines
    headers += ["", " " * (len(left_header) - len(right_header)) + right_header]
    headers += [" " * len(left_header)] * (len(right_repr) - 1)
    return "\n".join(["".join(lines) for lines in zip(headers, [*left_repr, "", *right_repr])])
