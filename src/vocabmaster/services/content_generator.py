"""Word definitions built from WordNet, Google Translate and IPA transcription."""
import asyncio
import logging
import random
from datetime import datetime, timedelta
from typing import List, Optional

import eng_to_ipa as ipa
import nltk
from deep_translator import GoogleTranslator
from nltk.corpus import wordnet

from vocabmaster.config import settings
from vocabmaster.models.domain import WordInsight

logger = logging.getLogger(__name__)


class DictionaryLookupProvider:
    """Lookup provider assembling a WordInsight from dictionary libraries."""
    _last_check: Optional[datetime] = None
    _check_interval = timedelta(days=7)  # Check for WordNet updates every 7 days

    def __init__(
        self,
        source_language: Optional[str] = None,
        target_language: Optional[str] = None,
        max_cognates: Optional[int] = None,
        rng: Optional[random.Random] = None,
    ):
        self.source_language = source_language or settings.lookup.source_language
        self.target_language = target_language or settings.lookup.target_language
        self.max_cognates = settings.lookup.max_cognates if max_cognates is None else max_cognates
        self.rng = rng or random.Random()

    @classmethod
    def _check_and_update_nltk(cls) -> None:
        """Make sure the WordNet corpus is available."""
        current_time = datetime.now()
        if cls._last_check is not None and current_time - cls._last_check <= cls._check_interval:
            return
        try:
            nltk.data.find("corpora/wordnet")
        except LookupError:
            nltk.download("wordnet", quiet=True)
            logger.info("Downloaded NLTK wordnet data")
        cls._last_check = current_time

    def generate_translation(self, word: str) -> str:
        """Translate a word into the learner's language."""
        try:
            translator = GoogleTranslator(source=self.source_language, target=self.target_language)
            translation = translator.translate(word)
            logger.info(f"Translation generated for word: {word}, translation: {translation}")
            return translation or ""
        except Exception as e:
            logger.error(f"Error generating translation for word: {word}, error: {e}")
            return ""

    def generate_phonetic(self, word: str) -> str:
        """IPA transcription for single English words."""
        if self.source_language != "en" or len(word.split()) != 1:
            return ""
        try:
            transcription = ipa.convert(word)
        except Exception as e:
            logger.error(f"Error generating transcription for word: {word}, error: {e}")
            return ""
        # eng_to_ipa marks words missing from its dictionary with an asterisk
        if not transcription or "*" in transcription:
            return ""
        return f"/{transcription}/"

    def generate_example(self, word: str) -> str:
        """An example sentence from the first WordNet sense that has one."""
        try:
            synsets = wordnet.synsets(word)
        except LookupError as e:
            logger.warning(f"WordNet unavailable, no example for word: {word}, error: {e}")
            return ""
        for synset in synsets:
            examples = synset.examples()
            if examples:
                return self.rng.choice(examples)
        return ""

    def generate_cognates(self, word: str) -> List[str]:
        """Derivationally related forms sharing the word's root."""
        key = word.lower()
        related: List[str] = []
        try:
            synsets = wordnet.synsets(word)
        except LookupError as e:
            logger.warning(f"WordNet unavailable, no cognates for word: {word}, error: {e}")
            return related
        for synset in synsets:
            for lemma in synset.lemmas():
                if lemma.name().lower() != key:
                    continue
                for form in lemma.derivationally_related_forms():
                    name = form.name().replace("_", " ")
                    if name.lower() != key and name not in related:
                        related.append(name)
        return related[: self.max_cognates]

    def build_insight(self, word: str) -> Optional[WordInsight]:
        """Assemble everything known about a word; None if it cannot be translated."""
        self._check_and_update_nltk()
        translation = self.generate_translation(word)
        if not translation:
            return None
        return WordInsight(
            headword=word,
            translation=translation,
            phonetic=self.generate_phonetic(word),
            example=self.generate_example(word),
            cognates=self.generate_cognates(word),
        )

    async def lookup(self, headword: str) -> Optional[WordInsight]:
        return await asyncio.to_thread(self.build_insight, headword)
