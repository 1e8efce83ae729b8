"""
ANSI styling for CLI output and the console log formatter
"""

class Colors:
    """ANSI escape codes plus the few styles the CLI prints with"""
    RESET = "\033[0m"
    BOLD = "\033[1m"

    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    MAGENTA = "\033[35m"
    CYAN = "\033[36m"
    WHITE = "\033[37m"
    GREY = "\033[90m"

    @classmethod
    def colorize(cls, text: str, *styles: str) -> str:
        """Apply one or more styles to ``text`` and reset afterwards"""
        return "".join(styles) + f"{text}{cls.RESET}"

    @classmethod
    def header(cls, text: str) -> str:
        return cls.colorize(text, cls.BOLD, cls.CYAN)

    @classmethod
    def warning(cls, text: str) -> str:
        return cls.colorize(text, cls.YELLOW)

    @classmethod
    def error(cls, text: str) -> str:
        return cls.colorize(text, cls.RED)

    @classmethod
    def success(cls, text: str) -> str:
        return cls.colorize(text, cls.GREEN)

    @classmethod
    def get_security_color(cls, security: str) -> str:
        """Green for implicit TLS, yellow for STARTTLS, red for plaintext"""
        return {
            "SSL / TLS": cls.GREEN,
            "STARTTLS": cls.YELLOW,
            "none": cls.RED,
        }.get(security, cls.WHITE)

    @classmethod
    def security(cls, security: str) -> str:
        """Security mode label in its color; unset modes print as "unknown"."""
        return cls.colorize(security or "unknown", cls.get_security_color(security))
