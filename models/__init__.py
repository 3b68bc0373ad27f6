from .crypto_assessment import CryptoAssessment
