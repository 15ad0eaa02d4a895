"""Extended DNS Error (EDE) options built from templates."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

import dns.edns
import dns.message
import dns.rdataclass
import dns.rdatatype

from .template import Template, TemplateInput


@dataclass
class EDNS0EDEInput:
    """The query and optional blocklist match used to fill the EDE text."""

    msg: dns.message.Message
    match: Optional[Any] = None


class EDNS0EDETemplate:
    """Adds an EDE option with a templated text to responses."""

    def __init__(self, info_code: int, text_template: Template) -> None:
        self.info_code = info_code
        self.text_template = text_template

    def apply(self, msg: dns.message.Message, data: EDNS0EDEInput) -> None:
        """Render the text and attach the EDE option to msg."""
        q = data.msg
        if q.question:
            question = q.question[0]
            name = str(question.name)
            qclass = dns.rdataclass.to_text(question.rdclass)
            qtype = dns.rdatatype.to_text(question.rdtype)
        else:
            name = qclass = qtype = ""
        tpl_input = TemplateInput(
            id=q.id, question=name, question_class=qclass, question_type=qtype
        )
        if data.match is not None:
            tpl_input.blocklist_rule = getattr(data.match, "rule", "")
            tpl_input.blocklist = getattr(data.match, "list", "")
        text = self.text_template.apply(tpl_input)
        ede = dns.edns.EDEOption(self.info_code, text or None)
        msg.use_edns(0, payload=4096, options=[ede])


def new_edns0_ede_template(info_code: int, extra_text: str) -> Optional[EDNS0EDETemplate]:
    """Build an EDE template, or return None if neither code nor text is set."""
    if info_code == 0 and extra_text == "":
        return None
    return EDNS0EDETemplate(info_code, Template(extra_text))