r"""
Request path denylist.

Every rule is a regular expression searched case-insensitively anywhere in
the decoded request path, e.g. r"/\.git(/|$)" or r"\.env$".
"""
import enum
import re


FORBIDDEN_BODY = b"Access to this resource is forbidden."


class Verdict(enum.Enum):
	ALLOW = "allow"
	BLOCK = "block"


def compile_rules(patterns):
	"""Compile patterns once at load time, re.error propagates to the caller."""
	return tuple(re.compile(p, re.IGNORECASE) for p in patterns)


def evaluate(path, rules):
	if not rules or not path:
		return Verdict.ALLOW
	for rule in rules:
		if isinstance(rule, str):
			rule = re.compile(rule, re.IGNORECASE)
		if rule.search(path):
			return Verdict.BLOCK
	return Verdict.ALLOW
