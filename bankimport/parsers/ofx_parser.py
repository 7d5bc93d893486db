"""OFX/QFX statement parser for both SGML and XML variants.

SGML files (OFXHEADER:100) use <TAG>value with optional closing tags; XML
files (<?xml ...?><?OFX ...?>) always close them. Values are extracted with
regex, not an XML parser, so both variants share one code path.

Mapping:
    DTPOSTED -> transaction_date     TRNAMT -> amount
    NAME (or MEMO) -> description    FITID  -> reference
    ACCTID -> account_number         CURDEF -> currency
    DTUSER -> value_date             LEDGERBAL/BALAMT -> balance (last row)
"""

from __future__ import annotations

import re
from pathlib import Path

from .base import BaseParser, ParsedBankTransaction, parse_amount, parse_date
from .csv_parser import read_text


class OfxParser(BaseParser):
    """Parse OFX/QFX bank statements."""

    EXTENSIONS = {".ofx", ".qfx"}

    def detect(self, file_path: Path) -> bool:
        """OFX files start with an OFXHEADER or an <?OFX processing instruction."""
        try:
            with open(file_path, "r", errors="replace") as f:
                head = f.read(500).upper()
        except OSError:
            return False
        return "OFXHEADER" in head or "<OFX>" in head or "<?OFX" in head

    def parse(self, file_path: Path) -> list[ParsedBankTransaction]:
        return self.parse_text(read_text(file_path))

    def parse_text(self, content: str) -> list[ParsedBankTransaction]:
        self.skipped_count = 0
        account = self._extract_tag(content, "ACCTID")
        currency = self._extract_tag(content, "CURDEF")
        balance = parse_amount(self._extract_tag(content, "BALAMT"))

        transactions: list[ParsedBankTransaction] = []
        for block in self._split_transactions(content):
            txn = self._parse_transaction_block(block, account, currency)
            if txn is not None:
                transactions.append(txn)
            else:
                self.skipped_count += 1

        if transactions and balance is not None:
            transactions[-1].balance = balance
        return transactions

    def _split_transactions(self, content: str) -> list[str]:
        """Split content into individual STMTTRN blocks."""
        pattern = r'<STMTTRN>(.*?)(?=</STMTTRN>|<STMTTRN>|</BANKTRANLIST>|\Z)'
        return re.findall(pattern, content, re.DOTALL | re.IGNORECASE)

    def _parse_transaction_block(
        self, block: str, account: str | None, currency: str | None
    ) -> ParsedBankTransaction | None:
        dtposted = self._extract_tag(block, "DTPOSTED")
        trnamt = self._extract_tag(block, "TRNAMT")
        if not dtposted or not trnamt:
            return None

        txn_date = parse_date(dtposted)
        if txn_date is None:
            return None
        value_date = parse_date(self._extract_tag(block, "DTUSER"))

        amount = parse_amount(trnamt)
        name = self._extract_tag(block, "NAME")
        memo = self._extract_tag(block, "MEMO")
        description = name or memo or ""
        warnings = [] if description else ["Missing description"]

        return ParsedBankTransaction(
            transaction_date=txn_date.isoformat(),
            amount=amount if amount is not None else trnamt,
            description=description,
            reference=self._extract_tag(block, "FITID"),
            account_number=account,
            currency=currency.upper() if currency else None,
            value_date=value_date.isoformat() if value_date else None,
            counterparty=self._extract_tag(block, "PAYEEID"),
            warnings=warnings,
        )

    @staticmethod
    def _extract_tag(block: str, tag: str) -> str | None:
        """Extract value for a tag.

        Handles both:
            <TAG>value          (SGML, no closing tag)
            <TAG>value</TAG>    (XML, with closing)
        """
        match = re.search(rf'<{tag}>([^<\n\r]*)', block, re.IGNORECASE)
        if match:
            value = match.group(1).strip()
            return value or None
        return None
