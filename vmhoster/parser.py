"""
hosts 文件行解析模块
"""

from typing import List

from vmhoster.errors import CommentLineError, EmptyLineError, MalformedLineError
from vmhoster.models import HostEntry


def split_lines(text: str) -> List[str]:
    """
    按 hosts 文件的行号规则切分文本

    只按 \\n 切分，并去掉每行末尾的一个 \\r；文件以换行结尾时不产生额外的空行。
    返回的下标就是加载与写回时使用的行号。
    """
    if not text:
        return []
    lines = text.split('\n')
    if lines[-1] == '':
        lines.pop()
    return [line[:-1] if line.endswith('\r') else line for line in lines]


def parse_line(index: int, raw_line: str) -> List[HostEntry]:
    """
    解析 hosts 文件中的一行

    第一个字段是 IP，之后直到以 # 开头的字段为止都是主机名；
    该字段及其后的所有字段以空格连接为注释。

    参数:
        index: 行号（从 0 开始）
        raw_line: 原始行内容

    返回:
        每个主机名一个 HostEntry，共享 index、IP 和注释

    异常:
        EmptyLineError: 去除空白后为空
        CommentLineError: 整行注释
        MalformedLineError: 没有 IP 或没有主机名
    """
    line = raw_line.strip()
    if not line:
        raise EmptyLineError(index, raw_line)
    if line[0] == '#':
        raise CommentLineError(index, raw_line)

    fields = line.split()
    ip = fields[0]
    hostnames: List[str] = []
    comment_fields: List[str] = []

    for position, value in enumerate(fields[1:], start=1):
        if value.startswith('#'):
            # 注释开始后不再收集主机名
            head = value[1:]
            comment_fields = ([head] if head else []) + fields[position + 1:]
            break
        hostnames.append(value)

    if not hostnames:
        raise MalformedLineError(index, raw_line)

    comment = ' '.join(comment_fields)
    return [
        HostEntry(ip=ip, hostname=hostname, comment=comment, source_line=index)
        for hostname in hostnames
    ]
