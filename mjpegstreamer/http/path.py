"""Normalisation of HTTP request paths."""

from __future__ import annotations


def simplify_request_path(path: str) -> str:
    """Collapse ``.``, ``..`` and repeated slashes in a request path.

    Leading spaces are dropped and ``..`` never climbs above the root, so
    the result cannot escape the directory it is later joined to.
    """
    path = path.split("\0", 1)[0]
    if not path:
        return ""

    src = path.lstrip(" ")
    if src.startswith("."):
        if src[1:2] in ("/", ""):
            src = src[1:]
        elif src[1:2] == "." and src[2:3] in ("/", ""):
            src = src[2:]

    out: list[str] = []
    slash = 0
    chars = iter(src)
    pre1 = ""
    ch = next(chars, "")

    while ch:
        pre2 = pre1
        pre1 = ch
        ch = next(chars, "")
        out.append(pre1)

        if ch in ("/", ""):
            toklen = len(out) - slash
            if toklen == 3 and pre2 == "." and pre1 == "." and out[slash] == "/":
                # "/../" or "/.." at the end: drop the previous component too
                end = slash
                if end > 0:
                    end -= 1
                    while end > 0 and out[end] != "/":
                        end -= 1
                if not ch:
                    end += 1
                del out[end:]
            elif toklen == 1 or (pre2 == "/" and pre1 == "."):
                # "//" or "/./" or a trailing "/" or "/."
                end = slash
                if not ch:
                    end += 1
                del out[end:]
            slash = len(out)

    return "".join(out)