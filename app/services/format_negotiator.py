def negotiate_format(requested: str | None, accept: str | None = "") -> str:
    """
    确定输出编码格式。

    显式指定（非 auto）时直接使用；否则按 Accept 头依次查找 avif > webp，都没有则为 jpg。
    只做子串匹配，不解析 q 值。
    """
    fmt = (requested or "auto").lower()
    if fmt != "auto":
        return "jpg" if fmt == "jpeg" else fmt

    accept = (accept or "").lower()
    if "image/avif" in accept:
        return "avif"
    if "image/webp" in accept:
        return "webp"
    return "jpg"
