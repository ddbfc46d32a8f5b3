"""
Chess commentary placement.

Components:
- history: canonical move history from a PGN transcript (python-chess)
- aligner: three-pass matching of untrusted annotation moments onto plies
- ply_corrector: verification realization (corrects plies before caching/response)
- tree/indexer/materializer/presenter: presentation realization over a host move list
- extraction/llm_client/cache/service/api: annotation source, transport and HTTP surface
"""
# Package exports are intentionally minimal; import modules directly as needed.
