"""
どこで: `engine.core` サブパッケージ。
何を: テンプレート/レンダーコンテキスト/チェックポイント/時間換算と、フレーム駆動（Tickable/FrameClock）。
なぜ: コンパイラ・レンダー・ランタイムの各層が共有する最内層の値型を 1 箇所に置くため。
"""
