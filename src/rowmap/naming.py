"""Identifier to column name normalization."""


def snakecase(name: str) -> str:
    """Convert a CamelCase identifier into a lower case, underscore separated name.

    A run of capitals is kept together as one acronym unless the last capital
    starts a new word, so ``VerifySSLExpiry`` becomes ``verify_ssl_expiry``.
    """
    out: list[str] = []
    prev_upper = False

    for i, c in enumerate(name):
        next_lower = i + 1 < len(name) and name[i + 1].islower()

        if c.isupper():
            starts_word = not prev_upper or next_lower
            if i > 0 and starts_word and out[-1] != "_":
                out.append("_")
            out.append(c.lower())
            prev_upper = True
        else:
            out.append(c)
            prev_upper = False

    return "".join(out)
