import os


def ensure_dir(path: str) -> None:
    if path:
        os.makedirs(path, exist_ok=True)


def write_descriptor(path: str, text: str) -> None:
    ensure_dir(os.path.dirname(path))
    with open(path, "w", encoding="utf-8") as f:
        f.write(text)
        f.write("\n")


def read_descriptor(path: str) -> str:
    with open(path, "r", encoding="utf-8") as f:
        return f.read().strip()
